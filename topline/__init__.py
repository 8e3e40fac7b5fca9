"""
Topline: content curation pipeline.

Layers:
- tools: feed fetching (RSSTool) and the text-generation boundary (LLMService)
- curation: relevance filter, dedup, classifier, scorer, enricher, selection
- pipeline: CurationPipeline orchestrating one run end to end
"""

__version__ = "1.0.0"
