import asyncio
import json
import re
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import requests
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field
from src.core.models.records import ContentRecord, StageError
from src.core.pipeline import Pipeline
from src.config.settings import settings
from src.utils.errors import FetchError, PipelineError
from src.utils.logging import logger

USER_AGENT = "Mozilla/5.0 tutorial-bot"
TECHNICAL_WORDS = ["algorithm", "model", "data", "analysis", "machine", "learning"]
TOP_KEYWORDS = 10
TOP_TOPICS = 5


class AnalysisState(BaseModel):
    status: str = "idle"
    urls: List[str] = Field(default_factory=list)
    raw_articles: List[Dict[str, Any]] = Field(default_factory=list)
    results: List[ContentRecord] = Field(default_factory=list)
    insights: Dict[str, Any] = Field(default_factory=dict)
    exported: Dict[str, Any] = Field(default_factory=dict)
    errors: List[StageError] = Field(default_factory=list)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def describe(values: Sequence[float]) -> Dict[str, float]:
    """Summary statistics in the spirit of pandas' describe()."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return {"count": 0}
    return {
        "count": int(arr.size),
        "mean": float(np.mean(arr)),
        "median": float(np.median(arr)),
        "std": float(np.std(arr)),
        "min": float(np.min(arr)),
        "max": float(np.max(arr)),
    }


class WebContentAnalyzer:
    def __init__(
        self,
        output_file: Optional[Path] = None,
        quality_threshold: Optional[float] = None,
        fetch_delay: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.output_file = Path(output_file) if output_file is not None else settings.CONTENT_OUTPUT_FILE
        self.quality_threshold = quality_threshold if quality_threshold is not None else settings.QUALITY_THRESHOLD
        self.fetch_delay = fetch_delay if fetch_delay is not None else settings.FETCH_DELAY_SECONDS
        self.session = session or requests.Session()
        self.pipeline = Pipeline("content-analysis", [
            ("fetching", self.fetch_stage),
            ("analyzing", self.analyze_stage),
            ("summarizing", self.insights_stage),
            ("exporting", self.export_stage),
        ])

    def fetch_web_content(self, url: str) -> Dict[str, Any]:
        """Fetch a page and extract its title and body text.

        Args:
            url (str): Page to fetch

        Returns:
            Dict[str, Any]: url, title, content, wordCount and fetchedAt

        Raises:
            FetchError: If the request fails or the page has no text
        """
        logger.info(f"Fetching content from: {url}")
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=settings.FETCH_TIMEOUT_SECONDS
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        soup = BeautifulSoup(response.text, "html.parser")
        for element in soup.select("script, style, nav, footer"):
            element.decompose()

        heading = soup.find("h1")
        title = heading.get_text(" ", strip=True) if heading else ""
        if not title and soup.title and soup.title.string:
            title = soup.title.string.strip()

        content = " ".join(
            el.get_text(" ", strip=True) for el in soup.select("p, h2, h3")
        ).strip()
        if not content:
            raise FetchError(f"No readable content found at {url}")

        return {
            "url": url,
            "title": title or url,
            "content": content,
            "wordCount": len(content.split()),
            "fetchedAt": _now(),
        }

    def calculate_quality_score(self, article: Dict[str, Any]) -> float:
        score = 5.0

        word_count = article.get("wordCount", 0)
        if word_count > 500:
            score += 2
        if word_count > 1000:
            score += 1

        title = article.get("title") or ""
        if len(title) > 20:
            score += 1

        content = (article.get("content") or "").lower()
        tech_word_count = sum(1 for word in TECHNICAL_WORDS if word in content)
        score += min(2.0, tech_word_count * 0.5)

        return min(10.0, max(1.0, score))

    def analyze_text_content(self, article: Dict[str, Any]) -> ContentRecord:
        logger.info(f"Analyzing: {article.get('title')}")
        content = article.get("content") or ""

        words = [
            word for word in re.sub(r'[^\w\s]', ' ', content.lower()).split()
            if len(word) > 3
        ]
        word_freq = Counter(words)
        top_keywords = [word for word, _ in word_freq.most_common(TOP_KEYWORDS)]

        sentences = len(re.split(r'[.!?]+', content))
        word_count = article.get("wordCount", len(content.split()))
        avg_words_per_sentence = word_count / max(sentences, 1)

        return ContentRecord(
            url=article["url"],
            title=article.get("title") or article["url"],
            content=content,
            word_count=word_count,
            unique_words=len(word_freq),
            top_keywords=top_keywords,
            readability_score=min(10.0, avg_words_per_sentence / 2),
            quality_score=self.calculate_quality_score(article),
            fetched_at=article.get("fetchedAt"),
            analyzed_at=_now()
        )

    @staticmethod
    def extract_top_topics(results: Sequence[ContentRecord]) -> List[str]:
        keyword_count = Counter(k for r in results for k in r.top_keywords)
        return [keyword for keyword, _ in keyword_count.most_common(TOP_TOPICS)]

    @staticmethod
    def generate_recommendation(avg_quality: float) -> str:
        if avg_quality >= 7:
            return "HIGH: Process all articles for embeddings - excellent content quality"
        if avg_quality >= 5:
            return "MEDIUM: Process articles with quality score > 6 for embeddings"
        return "LOW: Review content sources - quality below threshold"

    def generate_insights(self, results: Sequence[ContentRecord]) -> Dict[str, Any]:
        if not results:
            raise PipelineError("No data to analyze")

        word_stats = describe([r.word_count for r in results])
        quality_stats = describe([r.quality_score for r in results])
        avg_quality = round(quality_stats["mean"], 1)

        return {
            "totalArticles": len(results),
            "avgWordCount": int(round(word_stats["mean"])),
            "avgQualityScore": avg_quality,
            "wordCountStats": word_stats,
            "qualityStats": quality_stats,
            "topTopics": self.extract_top_topics(results),
            "recommendation": self.generate_recommendation(avg_quality),
            "generatedAt": _now(),
        }

    def export_for_embedding(
        self,
        results: Sequence[ContentRecord],
        insights: Dict[str, Any],
        path: Optional[Path] = None
    ) -> Dict[str, Any]:
        """Write high-quality articles for the embedding pipeline."""
        path = Path(path) if path is not None else self.output_file
        export_data = {
            "analysis": insights,
            "contentData": [
                r.to_json_dict() for r in results if r.quality_score >= self.quality_threshold
            ],
            "exportedAt": _now(),
            "nextStep": "Run the build-embeddings command on this file",
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(export_data, f, indent=2)

        logger.info(f"Results exported to {path}")
        logger.info(f"{len(export_data['contentData'])} high-quality articles ready for embedding pipeline")
        return export_data

    async def fetch_stage(self, state: AnalysisState):
        for i, url in enumerate(state.urls):
            try:
                state.raw_articles.append(self.fetch_web_content(url))
            except FetchError as e:
                logger.error(str(e))
                state.errors.append(StageError(stage=state.status, error=str(e)))
            if self.fetch_delay and i < len(state.urls) - 1:
                await asyncio.sleep(self.fetch_delay)

    def analyze_stage(self, state: AnalysisState):
        for article in state.raw_articles:
            state.results.append(self.analyze_text_content(article))

    def insights_stage(self, state: AnalysisState):
        state.insights = self.generate_insights(state.results)
        self.display_insights(state.insights)

    def export_stage(self, state: AnalysisState):
        if not state.insights:
            raise PipelineError("Nothing to export")
        state.exported = self.export_for_embedding(state.results, state.insights)

    @staticmethod
    def display_insights(insights: Dict[str, Any]):
        logger.info("=== WEB CONTENT ANALYSIS RESULTS ===")
        logger.info(f"Analyzed {insights['totalArticles']} articles")
        logger.info(f"Average length: {insights['avgWordCount']} words")
        logger.info(f"Average quality: {insights['avgQualityScore']}/10")
        logger.info(f"Top topics: {json.dumps(insights['topTopics'])}")
        logger.info(f"Recommendation: {insights['recommendation']}")

    async def fetch_and_analyze(self, urls: Optional[Sequence[str]] = None) -> AnalysisState:
        state = AnalysisState(urls=list(urls) if urls is not None else settings.sample_urls_list)
        logger.info(f"Starting web content analysis of {len(state.urls)} URLs")
        return await self.pipeline.run(state)
