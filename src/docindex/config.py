"""Typed configuration for each pipeline stage.

Every component receives its config explicitly; nothing reads globals or
the environment. Names supplied by users (attribute fields, metadata keys,
result columns) go through ``validate_identifier`` before use.
"""

import hashlib
import json
import re
from dataclasses import asdict, dataclass, field

from docindex.errors import ConfigError
from docindex.models import ParseMode

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")

DEFAULT_SEPARATORS = ("\n\n", "\n", " ", "")


def validate_identifier(name: str) -> str:
    """Check a user-supplied name against the identifier allow-list.

    Args:
        name: Field, key, or column name

    Returns:
        The name unchanged

    Raises:
        ConfigError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ConfigError(f"Invalid identifier: {name!r}")
    return name


@dataclass(frozen=True)
class ParseConfig:
    """Options for the parser/extractor."""

    mode: ParseMode = ParseMode.OCR
    timeout: float = 120.0
    retries: int = 1
    page_split: bool = True
    ocr_resolution: int = 300

    def __post_init__(self) -> None:
        if not isinstance(self.mode, ParseMode):
            try:
                object.__setattr__(self, "mode", ParseMode(self.mode))
            except ValueError:
                raise ConfigError(f"Unknown parse mode: {self.mode!r}") from None
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.retries < 0:
            raise ConfigError("retries must be >= 0")
        if self.ocr_resolution <= 0:
            raise ConfigError("ocr_resolution must be positive")


@dataclass(frozen=True)
class ChunkingConfig:
    """Options for the recursive chunker."""

    target_size: int = 1512
    overlap: int = 256
    separators: tuple[str, ...] = DEFAULT_SEPARATORS
    contextualize: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "separators", tuple(self.separators))
        if self.target_size <= 0:
            raise ConfigError("target_size must be positive")
        if not 0 <= self.overlap < self.target_size:
            raise ConfigError("overlap must satisfy 0 <= overlap < target_size")
        if not self.separators:
            raise ConfigError("at least one separator is required")
        if len(set(self.separators)) != len(self.separators):
            raise ConfigError("separators must be unique")


@dataclass(frozen=True)
class IndexConfig:
    """Options for index publication and embedding calls."""

    target_lag: float = 0.0
    batch_size: int = 64
    embed_batch_size: int = 32
    max_retries: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0

    def __post_init__(self) -> None:
        if self.target_lag < 0:
            raise ConfigError("target_lag must be >= 0")
        if self.batch_size < 1 or self.embed_batch_size < 1:
            raise ConfigError("batch sizes must be >= 1")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be >= 1")
        if self.retry_min_wait < 0 or self.retry_max_wait < self.retry_min_wait:
            raise ConfigError("retry waits must satisfy 0 <= min <= max")


@dataclass(frozen=True)
class SearchConfig:
    """Options for hybrid ranking."""

    lexical_weight: float = 1.0
    semantic_weight: float = 1.0
    rrf_k: int = 60
    min_semantic_score: float = 0.3
    default_limit: int = 10
    max_limit: int = 1000

    def __post_init__(self) -> None:
        if self.lexical_weight < 0 or self.semantic_weight < 0:
            raise ConfigError("weights must be >= 0")
        if self.lexical_weight == 0 and self.semantic_weight == 0:
            raise ConfigError("at least one weight must be positive")
        if self.rrf_k < 0:
            raise ConfigError("rrf_k must be >= 0")
        if not 1 <= self.default_limit <= self.max_limit:
            raise ConfigError("default_limit must be within 1..max_limit")


@dataclass(frozen=True)
class PipelineConfig:
    """Top-level configuration for an ingestion run."""

    max_workers: int = 4
    parse: ParseConfig = field(default_factory=ParseConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError("max_workers must be >= 1")

    def fingerprint(self) -> str:
        """Hash of the settings that shape a document's chunks.

        Stored per document; a different fingerprint forces re-ingestion
        even when the content hash is unchanged.
        """
        payload = {
            "mode": self.parse.mode.value,
            "page_split": self.parse.page_split,
            "chunking": asdict(self.chunking),
        }
        encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()[:16]
