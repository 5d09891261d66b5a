"""Trender service FastAPI application."""

from functools import lru_cache
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from trendwire import __version__
from trendwire.core.logging import get_logger, setup_logging
from trendwire.core.models import SOURCE_ORDER, ArticlePlatform, SourceKind
from trendwire.core.settings import settings
from trendwire.core.time import utc_now
from trendwire.trender.pipeline import AggregationOptions, TrendAggregator, build_aggregator
from trendwire.trender.summary import summarize

# Setup logging
setup_logging("trender")
logger = get_logger(__name__)

MAX_ANALYZE_TOPICS = 5
DEFAULT_ARTICLE_SEARCH_LIMIT = 20
SOCIAL_SOURCES = [SourceKind.TWITTER, SourceKind.REDDIT, SourceKind.YOUTUBE]

app = FastAPI(title="TrendWire Trender", version=__version__, description="Trending topics aggregation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalyzeOptions(BaseModel):
    """Article search options for a batch analysis."""
    article_limit: int = Field(default=10, ge=1, le=100, description="Articles per topic")
    use_newsapi: bool = True
    use_google_news: bool = True
    use_serpapi: bool = False


class AnalyzeRequest(BaseModel):
    """Request model for topic analysis."""
    topics: List[str] = Field(..., description=f"Topics to search articles for (first {MAX_ANALYZE_TOPICS} used)")
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)


@lru_cache()
def get_aggregator() -> TrendAggregator:
    """Aggregator shared by every request."""
    return build_aggregator(settings)


def _meta(**extra: Any) -> Dict[str, Any]:
    meta = {"request_time": utc_now().isoformat()}
    meta.update(extra)
    return meta


def _platforms(use_newsapi: Optional[bool], use_google_news: Optional[bool],
               use_serpapi: Optional[bool], enabled: set) -> set:
    """Article providers for a request; unset flags keep the service default."""
    selected = set(enabled)
    for platform, flag in ((ArticlePlatform.NEWSAPI, use_newsapi),
                           (ArticlePlatform.GOOGLE_NEWS, use_google_news),
                           (ArticlePlatform.SERPAPI, use_serpapi)):
        if flag is True:
            selected.add(platform)
        elif flag is False:
            selected.discard(platform)
    return selected


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "trender"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": __version__,
        "sources": [kind.value for kind in SOURCE_ORDER],
        "endpoints": {
            "health": "/healthz",
            "trends": "/trends",
            "summary": "/trends/summary",
            "category": "/trends/category/{category}",
            "google": "/trends/google",
            "social": "/trends/social",
            "articles": "/trends/articles/{query}",
            "analyze": "/trends/analyze (POST)"
        }
    }


@app.get("/trends")
async def get_trends(
    geo: Optional[str] = None,
    sources: Optional[str] = None,
    period: Optional[str] = None,
    category: Optional[str] = None,
    article_limit: Optional[str] = None,
    top_k: Optional[str] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """
    Run a full aggregation across every requested source.

    Returns the result, its display summary and request metadata. Malformed
    query values fall back to their defaults.
    """
    options = AggregationOptions(
        enabled_sources=sources,
        geo=geo,
        period=period,
        category=category,
        article_limit=article_limit,
        top_k=top_k
    )
    try:
        result = await aggregator.run(options)
    except Exception as e:
        logger.error(f"Trend aggregation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Trend aggregation failed: {str(e)}")

    return {
        "success": True,
        "data": result.to_dict(),
        "summary": summarize(result, top_k=options.top_k, classifier=aggregator.classifier).to_dict(),
        "meta": _meta(
            processing_time_ms=result.processing_time_ms,
            parameters=options.model_dump(mode="json")
        )
    }


@app.get("/trends/summary")
async def get_trends_summary(
    geo: Optional[str] = None,
    top_k: Optional[str] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """Quick summary of current trends, without article search."""
    options = AggregationOptions(geo=geo, article_limit=0, top_k=top_k)
    try:
        result = await aggregator.run(options)
    except Exception as e:
        logger.error(f"Trend summary failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Trend summary failed: {str(e)}")

    return {
        "success": True,
        "data": summarize(result, top_k=options.top_k, classifier=aggregator.classifier).to_dict(),
        "meta": _meta(processing_time_ms=result.processing_time_ms)
    }


@app.get("/trends/category/{category}")
async def get_trends_by_category(
    category: str,
    geo: Optional[str] = None,
    period: Optional[str] = None,
    article_limit: Optional[str] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """Trends belonging to one category. Unknown categories return no topics."""
    options = AggregationOptions(geo=geo, period=period, article_limit=article_limit)
    try:
        result = await aggregator.trending_by_category(category, options)
    except Exception as e:
        logger.error(f"Category trends failed for '{category}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Category trends failed: {str(e)}")

    return {
        "success": True,
        "data": result.to_dict(),
        "summary": summarize(result, classifier=aggregator.classifier).to_dict(),
        "meta": _meta(category=result.category)
    }


@app.get("/trends/google")
async def get_google_trends(
    geo: Optional[str] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """Google Trends records only."""
    options = AggregationOptions(enabled_sources=[SourceKind.GOOGLE], geo=geo)
    outcomes = await aggregator.collect(options)
    outcome = outcomes[SourceKind.GOOGLE]

    if not isinstance(outcome, list):
        raise HTTPException(status_code=502, detail=f"Google Trends failed: {outcome.message}")

    return {
        "success": True,
        "data": [record.to_dict() for record in outcome],
        "meta": _meta(source=SourceKind.GOOGLE.value, geo=options.geo, count=len(outcome))
    }


@app.get("/trends/social")
async def get_social_trends(
    platforms: Optional[str] = None,
    twitter_woeid: Optional[str] = None,
    reddit_subreddit: Optional[str] = None,
    youtube_region: Optional[str] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """Raw records of the social platforms, one entry per platform."""
    options = AggregationOptions(
        enabled_sources=platforms,
        twitter_woeid=twitter_woeid,
        reddit_subreddit=reddit_subreddit,
        youtube_region=youtube_region
    )
    social = [kind for kind in options.enabled_sources if kind in SOCIAL_SOURCES] or SOCIAL_SOURCES
    options = options.with_updates(enabled_sources=social)

    outcomes = await aggregator.collect(options)

    data = {}
    for kind, outcome in outcomes.items():
        if isinstance(outcome, list):
            data[kind.value] = [record.to_dict() for record in outcome]
        else:
            data[kind.value] = {"error": outcome.message}

    return {
        "success": True,
        "data": data,
        "meta": _meta(platforms=[kind.value for kind in social])
    }


@app.get("/trends/articles/{query}")
async def get_articles(
    query: str,
    limit: int = DEFAULT_ARTICLE_SEARCH_LIMIT,
    use_newsapi: Optional[bool] = None,
    use_google_news: Optional[bool] = None,
    use_serpapi: Optional[bool] = None,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """Articles about one topic from the selected providers."""
    service = aggregator.article_service
    if service is None:
        raise HTTPException(status_code=503, detail="Article search is not configured")

    platforms = _platforms(use_newsapi, use_google_news, use_serpapi, service.enabled_platforms)
    try:
        found = await service.fetch_all_articles(query, limit, platforms=platforms)
    except Exception as e:
        logger.error(f"Article search failed for '{query}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Article search failed: {str(e)}")

    return {
        "success": True,
        "data": [article.to_dict() for article in found.articles],
        "errors": [error.to_dict() for error in found.errors],
        "meta": _meta(
            query=query,
            count=len(found.articles),
            sources=sorted(platform.value for platform in platforms)
        )
    }


@app.post("/trends/analyze")
async def analyze_topics(
    request: AnalyzeRequest,
    aggregator: TrendAggregator = Depends(get_aggregator)
):
    """
    Search articles for several topics at once.

    Only the first topics are analyzed; a failure for one topic is reported
    in its entry and does not stop the others.
    """
    service = aggregator.article_service
    if service is None:
        raise HTTPException(status_code=503, detail="Article search is not configured")

    opts = request.options
    platforms = _platforms(opts.use_newsapi, opts.use_google_news, opts.use_serpapi, service.enabled_platforms)

    results = []
    for topic in request.topics[:MAX_ANALYZE_TOPICS]:
        try:
            found = await service.fetch_all_articles(topic, opts.article_limit, platforms=platforms)
        except Exception as e:
            logger.error(f"Error analyzing topic '{topic}': {e}")
            results.append({"topic": topic, "articles": [], "count": 0, "error": str(e)})
            continue

        results.append({
            "topic": topic,
            "articles": [article.to_dict() for article in found.articles],
            "count": len(found.articles),
            "errors": [error.to_dict() for error in found.errors]
        })

    return {
        "success": True,
        "data": results,
        "meta": _meta(topics_analyzed=len(results), topics_requested=len(request.topics))
    }


@app.on_event("startup")
async def startup_event():
    """Startup event handler."""
    logger.info(
        "Starting trender service",
        extra={
            "service": "trender",
            "version": __version__,
            "environment": settings.environment
        }
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler."""
    logger.info("Shutting down trender service")
    if get_aggregator.cache_info().currsize:
        await get_aggregator().aclose()


if __name__ == "__main__":
    logger.info("Starting trender service via uvicorn")
    uvicorn.run(
        "trendwire.trender.app:app",
        host=settings.service_host,
        port=settings.service_port or 8002,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
