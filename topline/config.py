"""
Configuration management for the Topline curation pipeline.

Runtime knobs (credentials, timeouts, batch sizes) come from the environment
through pydantic-settings. Keyword tables, thresholds and the static feed
source list are module data folded into a frozen CurationConfig that is
handed to each curation component at construction.
"""

from functools import lru_cache
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from topline.schemas.base import Priority, Vertical
from topline.schemas.content import FeedSource


class ConfigurationError(RuntimeError):
    """A required external-service credential or setting is missing."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Configuration (OpenAI chat models through pydantic-ai)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_lite_model: str = Field(default="gpt-4.1-nano", alias="OPENAI_LITE_MODEL")
    openai_base_url: str = Field(default="", alias="OPENAI_BASE_URL")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")
    # Pause between per-item generation calls within one source
    llm_call_delay_seconds: float = Field(default=1.0, alias="LLM_CALL_DELAY_SECONDS")
    # LLM-assisted scoring for HIGH priority sources
    scorer_use_llm: bool = Field(default=True, alias="SCORER_USE_LLM")

    # ── Feed fetching ──
    feed_max_items_per_source: int = Field(default=10, alias="FEED_MAX_ITEMS_PER_SOURCE")
    feed_batch_size: int = Field(default=5, alias="FEED_BATCH_SIZE")
    feed_batch_pause_seconds: float = Field(default=1.0, alias="FEED_BATCH_PAUSE_SECONDS")
    feed_timeout_seconds: float = Field(default=10.0, alias="FEED_TIMEOUT_SECONDS")
    # Missing or untrustworthy dates are replaced by a random time in this window
    feed_date_repair_window_hours: int = Field(default=12, alias="FEED_DATE_REPAIR_WINDOW_HOURS")
    feed_language_filter: bool = Field(default=True, alias="FEED_LANGUAGE_FILTER")
    feed_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; ToplineBot/1.0; +https://topline.example)",
        alias="FEED_USER_AGENT",
    )

    # ── Pipeline ──
    pipeline_source_concurrency: int = Field(default=3, alias="PIPELINE_SOURCE_CONCURRENCY")

    # Application Settings
    api_key: str = Field(default="", alias="API_KEY")
    mock_mode: bool = Field(default=False, alias="MOCK_MODE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database
    database_url: str = Field(default="sqlite:///./topline.db", alias="DATABASE_URL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def require_llm_credentials(self):
        """Raise ConfigurationError when generation is needed but not configured."""
        if self.mock_mode:
            return
        if not self.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set; set it or enable MOCK_MODE"
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ══════════════════════════════════════════════════════════════════════════════
# FEED SOURCES
# ══════════════════════════════════════════════════════════════════════════════

def _source(name, endpoint, vertical=Vertical.TECHNOLOGY_MEDIA, priority=Priority.MEDIUM, enabled=True):
    return FeedSource(name=name, endpoint=endpoint, vertical=vertical, priority=priority, enabled=enabled)


DEFAULT_FEED_SOURCES = [
    # ── Ad tech / mar tech trade press ──
    _source("AdExchanger", "https://www.adexchanger.com/feed/", priority=Priority.HIGH),
    _source("MarTech Today", "https://martech.org/feed/", priority=Priority.HIGH),
    _source("Digiday", "https://digiday.com/feed/", priority=Priority.HIGH),
    _source("Ad Age", "https://adage.com/rss.xml", priority=Priority.HIGH, enabled=False),  # endpoint 404s
    _source("Marketing Land", "https://marketingland.com/feed", priority=Priority.HIGH),
    _source("Campaign US", "https://www.campaignlive.com/rss", priority=Priority.HIGH, enabled=False),  # endpoint 404s
    _source("MediaPost - Social Media Marketing", "http://feeds.mediapost.com/social-media-marketing-daily", priority=Priority.HIGH),
    _source("Search Engine Land", "https://searchengineland.com/feed", priority=Priority.HIGH),
    _source("Search Engine Journal", "https://www.searchenginejournal.com/feed/", priority=Priority.HIGH),
    _source("Content Marketing Institute", "https://contentmarketinginstitute.com/feed/", priority=Priority.HIGH),
    _source("MarketingProfs", "https://www.marketingprofs.com/feed.xml"),
    _source("HubSpot Marketing Blog", "https://blog.hubspot.com/marketing/rss.xml"),
    _source("Marketing Week", "https://www.marketingweek.com/feed/"),
    _source("CMSWire Marketing", "https://www.cmswire.com/marketing/rss/"),
    _source("TechCrunch", "https://techcrunch.com/feed/"),
    # ── Vertical trade press ──
    _source("Forbes CMO Network", "https://www.forbes.com/sites/cmo/feed/", Vertical.SERVICES),
    _source("Retail Dive", "https://www.retaildive.com/feeds/news/", Vertical.CONSUMER_RETAIL),
    _source("Modern Healthcare", "https://www.modernhealthcare.com/rss.xml", Vertical.HEALTHCARE, enabled=False),  # endpoint 404s
    _source("American Banker", "https://www.americanbanker.com/feed.rss", Vertical.FINANCIAL_SERVICES),
    _source("Banking Dive", "https://www.bankingdive.com/feeds/news/", Vertical.FINANCIAL_SERVICES),
]


# ══════════════════════════════════════════════════════════════════════════════
# RELEVANCE FILTER KEYWORDS
# ══════════════════════════════════════════════════════════════════════════════

# Narrow on purpose: dropping a relevant item costs more than keeping a weak one
EXCLUDE_KEYWORDS = (
    "celebrity gossip", "sports scores", "weather forecast", "entertainment awards",
)

INCLUDE_KEYWORDS = (
    # AI / ML
    "artificial intelligence", "machine learning", "ai advertising", "programmatic ai",
    "generative ai", "ai marketing", "chatgpt", "automation",
    # Privacy / compliance
    "third-party cookies", "privacy regulations", "gdpr", "ccpa", "data privacy",
    "consent management", "first-party data", "cookieless",
    # Mar tech
    "customer data platform", "cdp", "marketing automation", "personalization",
    "attribution", "marketing mix modeling", "martech stack", "customer journey",
    "omnichannel", "marketing technology",
    # Ad tech
    "programmatic advertising", "demand side platform", "supply side platform",
    "header bidding", "real-time bidding", "connected tv", "ctv",
    "addressable advertising", "ad fraud", "viewability",
    # Deals
    "merger", "acquisition", "funding", "ipo", "valuation", "partnership",
    "revenue", "earnings", "investment",
    # Digital marketing
    "social media marketing", "influencer marketing", "content marketing",
    "email marketing", "search marketing", "seo", "ppc",
    # Retail / commerce
    "retail media", "e-commerce", "direct-to-consumer", "marketplace advertising",
    "product discovery",
)

BUSINESS_TERMS = (
    "marketing", "advertising", "brand", "sales", "revenue", "growth", "company",
    "business", "technology", "digital", "platform", "data", "analytics", "strategy",
    "customer", "campaign", "budget", "roi", "performance", "startup", "commerce",
)

INDUSTRY_TERMS = (
    "retail", "consumer", "financial", "bank", "healthcare", "insurance", "automotive",
    "telecom", "media", "publisher", "agency", "education", "travel", "hospitality",
)

ACTION_TERMS = (
    "launch", "announce", "acquire", "raise", "partner", "expand", "report",
    "unveil", "introduce", "release", "hire", "appoint", "invest",
)


# ══════════════════════════════════════════════════════════════════════════════
# VERTICAL CLASSIFIER PATTERNS
# ══════════════════════════════════════════════════════════════════════════════

VERTICAL_COMPANIES: Dict[Vertical, Tuple[str, ...]] = {
    Vertical.CONSUMER_RETAIL: (
        "amazon", "walmart", "target", "best buy", "costco", "home depot", "lowe's",
        "nike", "adidas", "starbucks", "mcdonald's", "coca-cola", "pepsi",
        "procter & gamble", "unilever", "nestle", "zara", "h&m", "macy's",
        "nordstrom", "sephora", "kraft", "kellogg", "general mills",
    ),
    Vertical.FINANCIAL_SERVICES: (
        "jpmorgan", "bank of america", "wells fargo", "chase", "citigroup",
        "goldman sachs", "morgan stanley", "american express", "visa", "mastercard",
        "paypal", "stripe", "robinhood", "charles schwab", "fidelity", "vanguard",
        "blackrock", "capital one", "td bank", "pnc",
    ),
    Vertical.HEALTHCARE: (
        "pfizer", "johnson & johnson", "merck", "abbott", "bristol myers", "moderna",
        "astrazeneca", "novartis", "roche", "gsk", "unitedhealth", "anthem", "cigna",
        "humana", "cvs health", "walgreens", "teladoc", "dexcom",
    ),
    Vertical.TECHNOLOGY_MEDIA: (
        "google", "facebook", "meta", "apple", "microsoft", "netflix", "disney",
        "salesforce", "adobe", "oracle", "sap", "servicenow", "zoom", "slack",
        "spotify", "linkedin", "tiktok", "snapchat", "pinterest", "reddit", "youtube",
        "the trade desk", "hubspot", "openai",
    ),
    Vertical.SERVICES: (
        "accenture", "deloitte", "mckinsey", "bcg", "pwc", "kpmg", "ibm", "cognizant",
        "infosys", "wipro", "tcs", "capgemini", "fedex", "ups", "dhl", "uber", "lyft",
        "doordash",
    ),
    Vertical.AUTOMOTIVE: (
        "ford", "general motors", "toyota", "honda", "nissan", "bmw", "mercedes",
        "audi", "volkswagen", "hyundai", "kia", "tesla", "rivian", "lucid", "porsche",
        "volvo", "subaru", "mazda",
    ),
    Vertical.TRAVEL_HOSPITALITY: (
        "marriott", "hilton", "hyatt", "ihg", "accor", "wyndham", "airbnb",
        "booking.com", "expedia", "tripadvisor", "kayak", "american airlines",
        "delta air lines", "united airlines", "southwest airlines", "jetblue",
        "carnival", "royal caribbean",
    ),
    Vertical.EDUCATION: (
        "pearson", "mcgraw-hill", "cengage", "blackboard", "coursera", "udemy", "edx",
        "khan academy", "duolingo", "chegg",
    ),
    Vertical.INSURANCE: (
        "state farm", "geico", "progressive", "allstate", "liberty mutual", "usaa",
        "nationwide", "travelers", "aig", "chubb", "zurich", "allianz", "axa",
        "prudential", "metlife", "new york life", "northwestern mutual",
    ),
    Vertical.TELECOM: (
        "verizon", "at&t", "t-mobile", "sprint", "comcast", "charter", "dish",
        "directv", "lumen", "vodafone", "telefonica", "deutsche telekom",
    ),
    Vertical.POLITICAL_ADVOCACY: (
        "dnc", "rnc", "actblue", "winred", "fec",
    ),
}

VERTICAL_KEYWORDS: Dict[Vertical, Tuple[str, ...]] = {
    Vertical.CONSUMER_RETAIL: (
        "retail", "retailer", "e-commerce", "consumer goods", "cpg", "fmcg",
        "shopper marketing", "consumer insights", "direct-to-consumer",
        "omnichannel retail", "brick and mortar", "point of sale", "consumer behavior",
        "brand loyalty", "retail technology", "grocery",
    ),
    Vertical.FINANCIAL_SERVICES: (
        "banking", "bank", "fintech", "financial services", "lending", "credit",
        "payments", "cryptocurrency", "blockchain", "wealth management",
        "asset management", "digital banking", "mobile banking", "credit cards",
        "mortgages",
    ),
    Vertical.HEALTHCARE: (
        "healthcare", "pharmaceutical", "pharma", "medical", "hospital", "telehealth",
        "telemedicine", "medicare", "medicaid", "clinical trials", "medical devices",
        "biotech", "patient care", "health tech", "digital health",
    ),
    Vertical.TECHNOLOGY_MEDIA: (
        "ai", "ad platform", "advertising technology", "marketing technology",
        "martech", "adtech", "ad tech", "programmatic", "programmatic advertising",
        "digital advertising", "marketing automation", "crm", "customer data platform",
        "personalization", "attribution", "marketing analytics", "social media marketing",
        "content marketing", "email marketing", "seo", "sem", "ppc",
        "display advertising", "video advertising", "connected tv", "ctv", "ott",
        "streaming", "digital media", "publisher", "ad spend", "media buying",
        "retail media", "header bidding", "real-time bidding", "first-party data",
        "third-party cookies", "podcast advertising", "audio advertising",
    ),
    Vertical.SERVICES: (
        "consulting", "professional services", "business services", "logistics",
        "shipping", "management consulting", "it services", "outsourcing",
        "agency", "staffing",
    ),
    Vertical.AUTOMOTIVE: (
        "automotive", "automaker", "auto industry", "car manufacturer",
        "electric vehicle", "electric vehicles", "autonomous driving",
        "self-driving", "connected car", "dealership", "auto sales", "car sales",
    ),
    Vertical.TRAVEL_HOSPITALITY: (
        "travel", "tourism", "hospitality", "hotel", "hotels", "airline", "airlines",
        "vacation", "cruise", "resort", "travel technology", "destination marketing",
    ),
    Vertical.EDUCATION: (
        "education", "e-learning", "online learning", "university", "college",
        "school", "edtech", "learning management", "student", "students",
        "curriculum", "higher education", "k-12",
    ),
    Vertical.INSURANCE: (
        "insurance", "insurer", "insurers", "life insurance", "auto insurance",
        "property insurance", "insurtech", "actuarial", "underwriting", "claims",
        "reinsurance", "policyholder",
    ),
    Vertical.TELECOM: (
        "telecommunications", "telecom", "wireless", "broadband", "isp", "cellular",
        "5g", "fiber optic", "satellite", "carrier", "spectrum",
    ),
    Vertical.POLITICAL_ADVOCACY: (
        "political advertising", "political ads", "election", "candidate",
        "campaign finance", "super pac", "advocacy", "ballot", "voter", "voters",
        "midterm", "nonprofit advocacy",
    ),
}

# Terms that send an otherwise unmatched item to the fallback vertical
GENERIC_FALLBACK_TERMS = (
    "marketing", "advertising", "campaign", "digital", "ai", "automation",
    "technology", "brand", "media",
)


# ══════════════════════════════════════════════════════════════════════════════
# RELEVANCE SCORER
# ══════════════════════════════════════════════════════════════════════════════

PREMIUM_SOURCES = ("TechCrunch", "Forbes", "Harvard Business Review", "McKinsey")
HIGH_QUALITY_SOURCES = ("AdExchanger", "MarTech Today", "Digiday", "Search Engine Land")

SCORE_KEYWORD_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "martech": (
        "martech", "marketing technology", "marketing automation", "customer data platform",
        "cdp", "personalization", "attribution", "ai", "artificial intelligence",
        "analytics", "first-party data",
    ),
    "adtech": (
        "adtech", "ad tech", "ad platform", "programmatic", "dsp", "ssp", "header bidding",
        "connected tv", "ctv", "retail media", "ad spend", "advertising",
    ),
    "crm": (
        "crm", "customer relationship", "lifecycle", "retention", "loyalty",
        "customer experience", "email marketing", "churn",
    ),
    "enterprise": (
        "acquisition", "merger", "funding", "ipo", "investment", "revenue",
        "regulation", "compliance", "privacy", "gdpr", "market share", "budget",
        "launch", "launches", "partnership", "strategy",
    ),
}

PRIORITY_VERTICALS = (
    Vertical.TECHNOLOGY_MEDIA, Vertical.FINANCIAL_SERVICES, Vertical.HEALTHCARE,
)

LIFESTYLE_PENALTY_TERMS = (
    "celebrity", "gossip", "entertainment", "sports", "horoscope", "fashion week",
    "recipe", "red carpet", "lifestyle",
)


# ══════════════════════════════════════════════════════════════════════════════
# ENRICHMENT VALIDATION
# ══════════════════════════════════════════════════════════════════════════════

# Boilerplate seen in earlier template-based output. Any hit fails validation.
GENERIC_PHRASES = (
    "is accelerating rapidly",
    "early adopters gaining significant competitive advantages",
    "this development signals where the market is heading",
    "reference this ai trend to discuss",
    "position your solution in the context of this market evolution",
    "privacy regulations and data changes are forcing immediate strategic shifts",
    "market consolidation and funding activities signal investor confidence",
    "the retail media and commerce landscape is evolving rapidly",
    "development represents a significant shift in industry dynamics",
    "is growing rapidly as organizations prioritize",
    "remains critical as digital becomes the primary",
    "are forcing brands to invest heavily in",
    "use this to discuss",
    "reference this to discuss",
    "reference this trend to demonstrate your understanding",
    "digital transformation is accelerating",
    "are modernizing",
    "market is evolving",
    "trends are changing",
    "optimization remains critical",
    "the importance of",
    "digitalizing",
    "ai and automation are transforming industry operations",
    "retail and consumer behavior is shifting dramatically",
    "this metric shows how brands are adapting their customer engagement",
    "understanding these metrics helps position solutions in the context",
    "this metric reveals how technology adoption is reshaping business operations",
    "the media and technology landscape is rapidly evolving",
    "financial services are undergoing digital transformation",
    "healthcare is embracing digital innovation",
    "this metric indicates how the sector is adapting",
    "how is your organization planning to capitalize on this growth trend",
    "what opportunities do you see in this expanding market",
    "how are these technology trends impacting your digital strategy",
    "where is your organization in terms of adoption of these technologies",
)

STOP_WORDS = frozenset({
    "about", "after", "again", "also", "because", "been", "before", "being",
    "between", "both", "could", "does", "doing", "down", "during", "each", "from",
    "further", "have", "having", "here", "into", "just", "more", "most", "much",
    "only", "other", "over", "same", "should", "some", "such", "than", "that",
    "their", "them", "then", "there", "these", "they", "this", "those", "through",
    "under", "until", "very", "were", "what", "when", "where", "which", "while",
    "will", "with", "would", "your", "yours", "said", "says", "year", "years",
    "today", "week", "new",
})


class CurationConfig(BaseModel):
    """
    Immutable tuning for the curation components.

    Every threshold and keyword table lives here so tests can substitute
    fixtures and operators can tune inclusion behaviour without code changes.
    """
    model_config = ConfigDict(frozen=True)

    # Relevance filter
    exclude_keywords: Tuple[str, ...] = EXCLUDE_KEYWORDS
    include_keywords: Tuple[str, ...] = INCLUDE_KEYWORDS
    business_terms: Tuple[str, ...] = BUSINESS_TERMS
    industry_terms: Tuple[str, ...] = INDUSTRY_TERMS
    action_terms: Tuple[str, ...] = ACTION_TERMS
    min_relevant_text_length: int = 50
    trusted_sources: Tuple[str, ...] = ()

    # Duplicate checker
    article_title_window_days: int = 7
    metric_title_window_days: int = 30
    article_title_threshold: float = 0.8
    metric_title_threshold: float = 0.85
    article_min_title_length: int = 20
    metric_min_title_length: int = 10
    content_window_days: int = 3
    content_threshold: float = 0.7
    content_prefix_chars: int = 200
    content_min_summary_length: int = 50

    # Vertical classifier
    vertical_companies: Dict[Vertical, Tuple[str, ...]] = Field(default_factory=lambda: dict(VERTICAL_COMPANIES))
    vertical_keywords: Dict[Vertical, Tuple[str, ...]] = Field(default_factory=lambda: dict(VERTICAL_KEYWORDS))
    company_weight: int = 3
    keyword_weight: int = 1
    fallback_vertical: Vertical = Vertical.TECHNOLOGY_MEDIA
    generic_fallback_terms: Tuple[str, ...] = GENERIC_FALLBACK_TERMS

    # Relevance scorer
    base_score: int = 50
    premium_sources: Tuple[str, ...] = PREMIUM_SOURCES
    high_quality_sources: Tuple[str, ...] = HIGH_QUALITY_SOURCES
    premium_source_bonus: int = 15
    high_quality_source_bonus: int = 10
    score_keyword_categories: Dict[str, Tuple[str, ...]] = Field(default_factory=lambda: dict(SCORE_KEYWORD_CATEGORIES))
    category_keyword_bonus: int = 5
    category_bonus_cap: int = 10
    priority_verticals: Tuple[Vertical, ...] = PRIORITY_VERTICALS
    priority_vertical_bonus: int = 5
    penalty_terms: Tuple[str, ...] = LIFESTYLE_PENALTY_TERMS
    penalty_per_term: int = 15
    llm_dimension_max: int = 25

    # Enrichment and tier-2 classification
    generic_phrases: Tuple[str, ...] = GENERIC_PHRASES
    stop_words: frozenset = STOP_WORDS
    min_shared_words: int = 2
    min_word_length: int = 4
    max_generation_attempts: int = 3
    retry_backoff_seconds: float = 0.5

    # Selection / rotation
    article_lookback_hours: int = 24
    metric_lookback_days: int = 90
    # None means a shown article is never reused
    article_cooldown_days: Optional[int] = None
    metric_cooldown_days: int = 3
    article_rotation_count: int = 25
    metric_rotation_count: int = 3
    article_ttl_hours: int = 24
    purge_after_days: int = 30


@lru_cache()
def get_curation_config() -> CurationConfig:
    """Default curation config; trusted sources are the enabled feed sources."""
    trusted = tuple(s.name for s in DEFAULT_FEED_SOURCES if s.enabled)
    return CurationConfig(trusted_sources=trusted)
