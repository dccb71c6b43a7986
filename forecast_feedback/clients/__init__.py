from .summarizer_client import ForecastSummarizer, GenerationResult, build_summarizer

__all__ = ["ForecastSummarizer", "GenerationResult", "build_summarizer"]
