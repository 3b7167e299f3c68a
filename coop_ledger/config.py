"""Configuration management for coop-ledger."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from coop_ledger.exceptions import ConfigurationError

STORE_BACKENDS = ("memory", "postgres", "supabase")
EVENT_SINKS = ("none", "console", "json", "kafka")


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "coop_ledger"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class SupabaseConfig:
    """Supabase project configuration."""

    url: str | None = None
    key: str | None = None
    proof_bucket: str = "payment-proofs"
    signed_url_ttl: int = 3600


@dataclass
class KafkaConfig:
    """Kafka producer configuration for ledger events."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    topic: str = "coop.ledger.events"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "retries": self.retries,
        }


@dataclass
class StoreConfig:
    """Document store selection and call policy."""

    backend: str = "memory"
    timeout_seconds: float = 10.0
    max_retries: int = 1
    backoff_seconds: float = 0.5
    file_base_url: str = "/files"

    def validate(self) -> None:
        """Raise ConfigurationError for unusable settings."""
        if self.backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"Unknown store backend {self.backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("Store timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("Store max_retries cannot be negative")


@dataclass
class CollectionsConfig:
    """Collection (table) names in the document store."""

    members: str = "members"
    savings_entries: str = "savings_entries"
    loan_requests: str = "loan_requests"
    loan_repayments: str = "loan_repayments"
    withdrawal_requests: str = "withdrawal_requests"
    registration_payments: str = "registration_payments"

    def all(self) -> list[str]:
        """Return every configured collection name."""
        return [
            self.members,
            self.savings_entries,
            self.loan_requests,
            self.loan_repayments,
            self.withdrawal_requests,
            self.registration_payments,
        ]


@dataclass
class CooperativeConfig:
    """Display configuration for the cooperative itself."""

    registration_fee: Decimal = Decimal("50")
    currency: str = "NGN"
    membership_prefix: str = "COOP"
    bank_account_name: str = "Cooperative Society Account"
    bank_account_number: str = ""
    bank_name: str = ""


@dataclass
class EventsConfig:
    """Ledger event publication configuration."""

    sink: str = "none"
    output_dir: Path = field(default_factory=lambda: Path("events"))

    def validate(self) -> None:
        """Raise ConfigurationError for an unknown sink."""
        if self.sink not in EVENT_SINKS:
            raise ConfigurationError(
                f"Unknown event sink {self.sink!r}; expected one of {', '.join(EVENT_SINKS)}"
            )


@dataclass
class LedgerConfig:
    """Main configuration for coop-ledger."""

    store: StoreConfig = field(default_factory=StoreConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    collections: CollectionsConfig = field(default_factory=CollectionsConfig)
    cooperative: CooperativeConfig = field(default_factory=CooperativeConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Create config from environment variables."""
        import os

        try:
            store = StoreConfig(
                backend=os.getenv("STORE_BACKEND", "memory").lower(),
                timeout_seconds=float(os.getenv("STORE_TIMEOUT", "10")),
                max_retries=int(os.getenv("STORE_MAX_RETRIES", "1")),
                backoff_seconds=float(os.getenv("STORE_BACKOFF", "0.5")),
                file_base_url=os.getenv("FILE_BASE_URL", "/files"),
            )

            postgres = PostgresConfig(
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "coop_ledger"),
                user=os.getenv("POSTGRES_USER", "postgres"),
                password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            )

            supabase = SupabaseConfig(
                url=os.getenv("SUPABASE_URL"),
                key=os.getenv("SUPABASE_KEY"),
                proof_bucket=os.getenv("PROOF_BUCKET", "payment-proofs"),
            )

            registration_fee = Decimal(os.getenv("REGISTRATION_FEE", "50"))
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            topic=os.getenv("KAFKA_TOPIC", "coop.ledger.events"),
        )

        defaults = CollectionsConfig()
        collections = CollectionsConfig(
            members=os.getenv("COLLECTION_MEMBERS", defaults.members),
            savings_entries=os.getenv("COLLECTION_SAVINGS_ENTRIES", defaults.savings_entries),
            loan_requests=os.getenv("COLLECTION_LOAN_REQUESTS", defaults.loan_requests),
            loan_repayments=os.getenv("COLLECTION_LOAN_REPAYMENTS", defaults.loan_repayments),
            withdrawal_requests=os.getenv(
                "COLLECTION_WITHDRAWAL_REQUESTS", defaults.withdrawal_requests
            ),
            registration_payments=os.getenv(
                "COLLECTION_REGISTRATION_PAYMENTS", defaults.registration_payments
            ),
        )

        cooperative = CooperativeConfig(
            registration_fee=registration_fee,
            currency=os.getenv("CURRENCY", "NGN"),
            membership_prefix=os.getenv("MEMBERSHIP_PREFIX", "COOP"),
            bank_account_name=os.getenv("BANK_ACCOUNT_NAME", "Cooperative Society Account"),
            bank_account_number=os.getenv("BANK_ACCOUNT_NUMBER", ""),
            bank_name=os.getenv("BANK_NAME", ""),
        )

        events = EventsConfig(
            sink=os.getenv("EVENT_SINK", "none").lower(),
            output_dir=Path(os.getenv("EVENT_OUTPUT_DIR", "events")),
        )

        return cls(
            store=store,
            postgres=postgres,
            supabase=supabase,
            kafka=kafka,
            collections=collections,
            cooperative=cooperative,
            events=events,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
