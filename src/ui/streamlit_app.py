import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.append(str(project_root))

import asyncio
import streamlit as st
from src.core.services.chat_agent import ChatAgent
from src.utils.logging import logger

@st.cache_resource
def get_agent() -> ChatAgent:
    """One agent per Streamlit server so conversation memory survives reruns."""
    return ChatAgent()

def ensure_agent_ready(agent: ChatAgent) -> bool:
    """Initialize the agent if it is not ready yet; retried on every rerun."""
    if not agent.ready:
        try:
            asyncio.run(agent.initialize())
        except Exception as e:
            logger.error(f"Failed to initialize chat agent: {e}")
    return agent.ready

class StreamlitUI:
    def __init__(self, agent: ChatAgent):
        self.agent = agent

    def setup_page(self):
        st.title("Tech Content Assistant")
        st.write("Ask about the analyzed articles and I'll answer with the sources I used.")
        if self.agent.ready:
            st.sidebar.success("Agent status: Ready")
        else:
            st.sidebar.error("Agent status: Not ready. Run the analyze and build-embeddings commands first.")

    @staticmethod
    def display_chat_message(role: str, content: str, sources=None):
        with st.chat_message(role):
            st.markdown(content)
            if sources:
                st.caption("Sources: " + ", ".join(sources))

    def process_query(self, query: str):
        """Run a query through the agent and display the response."""
        with st.chat_message("assistant"):
            placeholder = st.empty()
            placeholder.markdown("Searching documentation...")
            try:
                result = asyncio.run(self.agent.chat(query, st.session_state.conversation_id))
            except Exception as e:
                logger.error(f"Error processing query: {e}")
                placeholder.markdown(f"Sorry, I encountered an error: {str(e)}")
                return

            st.session_state.conversation_id = result.conversation_id
            placeholder.markdown(result.response)
            if result.sources:
                st.caption("Sources: " + ", ".join(s.title for s in result.sources))

    def main(self):
        self.setup_page()

        if "conversation_id" not in st.session_state:
            st.session_state.conversation_id = None

        if st.session_state.conversation_id:
            for turn in self.agent.get_conversation_history(st.session_state.conversation_id):
                self.display_chat_message("user", turn.query)
                self.display_chat_message("assistant", turn.response, turn.sources)

        user_input = st.chat_input("Ask about technology, AI, or machine learning...")

        if user_input and user_input.strip():
            self.display_chat_message("user", user_input)
            if not self.agent.ready:
                with st.chat_message("assistant"):
                    st.error("The chat agent is not ready yet.")
            else:
                self.process_query(user_input.strip())

        if st.button("Clear Conversation"):
            if st.session_state.conversation_id:
                self.agent.conversations.evict(st.session_state.conversation_id)
            st.session_state.conversation_id = None
            st.rerun()

def run_app():
    agent = get_agent()
    ensure_agent_ready(agent)
    ui = StreamlitUI(agent)
    ui.main()

if __name__ == "__main__":
    run_app()
