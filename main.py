import uvicorn
import argparse
import asyncio
import subprocess
from src.processing.content_analyzer import WebContentAnalyzer
from src.processing.embedding_pipeline import EmbeddingsPipeline
from src.core.services.chat_agent import ChatAgent
from src.config.settings import settings
from src.utils.logging import logger

async def analyze_content(urls=None):
    """Fetch and score articles, exporting the high-quality ones"""
    analyzer = WebContentAnalyzer()
    state = await analyzer.fetch_and_analyze(urls or settings.sample_urls_list)
    for error in state.errors:
        logger.warning(f"{error.stage}: {error.error}")
    return state

async def build_embeddings():
    """Chunk, embed and store the analyzed articles"""
    pipeline = EmbeddingsPipeline()
    return await pipeline.run()

async def ask(message: str, conversation_id: str = None):
    """Answer a single question from the command line"""
    agent = ChatAgent()
    try:
        await agent.initialize()
        result = await agent.chat(message, conversation_id)
        print(f"\nQ: {message}")
        print(f"A: {result.response}")
        print(f"Sources: {', '.join(s.title for s in result.sources) or 'None'}")
        return result
    finally:
        await agent.close()

if __name__ == "__main__":

    parser = argparse.ArgumentParser(description='Tech Content RAG')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Server command
    server_parser = subparsers.add_parser('serve', help='Run the server')
    server_parser.add_argument('--mode', choices=['api', 'ui'], required=True,
                             help='Run mode: api for FastAPI server or ui for Streamlit interface')
    server_parser.add_argument('--host', default='0.0.0.0', help='Host to run the server on')
    server_parser.add_argument('--port', type=int, default=3000, help='Port to run the server on')

    # Pipeline commands
    analyze_parser = subparsers.add_parser('analyze', help='Fetch and analyze web articles')
    analyze_parser.add_argument('--urls', nargs='+', help='URLs to analyze (defaults to SAMPLE_URLS)')

    subparsers.add_parser('build-embeddings', help='Chunk, embed and store analyzed articles')

    chat_parser = subparsers.add_parser('chat', help='Ask a single question')
    chat_parser.add_argument('message', help='Question to ask')
    chat_parser.add_argument('--conversation-id', default=None, help='Conversation to continue')

    args = parser.parse_args()

    if args.command == 'serve':
        if args.mode == 'api':
            from src.api.app import app
            uvicorn.run(app, host=args.host, port=args.port)
        elif args.mode == 'ui':
            subprocess.run(["streamlit", "run", "src/ui/streamlit_app.py"])
    elif args.command == 'analyze':
        asyncio.run(analyze_content(args.urls))
    elif args.command == 'build-embeddings':
        asyncio.run(build_embeddings())
    elif args.command == 'chat':
        asyncio.run(ask(args.message, args.conversation_id))
    else:
        parser.print_help()
