"""
Backend composition.

Everything that touches tables, buckets or credentials is reached through
one Backend object. Whether that is Supabase or the in-memory demo store
is decided here, once, from settings.supabase_configured.
"""

from dataclasses import dataclass
from functools import lru_cache
import structlog

from config import get_settings
from services.auth_service import AuthProvider, DemoAuthProvider, SupabaseAuthProvider, DEMO_ACCOUNTS
from services.repository import Repository, SupabaseRepository, InMemoryRepository
from services.storage import FileStorage, SupabaseStorage, InMemoryStorage

logger = structlog.get_logger(__name__)

MODE_SUPABASE = "supabase"
MODE_MEMORY = "memory"

# Table names
USERS_TABLE = "users"
TEMPLATES_TABLE = "user_templates"
SKU_MAPPING_TABLE = "sku_mapping"
UPLOAD_HISTORY_TABLE = "upload_history"
SALES_SUMMARY_TABLE = "sales_summary"
SALESMAN_MAPPING_TABLE = "salesman_mapping"

# Seed pairs for demo mode, taken from a real distributor master file
DEMO_SKU_MAPPINGS = (
    ("BNC CHOC TWST RS10", "Classic RT"),
    ("BNC ORNG MST MRP10", "Classic Double Burst"),
    ("MAGICMASALARS10", "Uni Klov Sleeks"),
    ("SFFNTSTKALMONDRS10", "AC L.I.T."),
    ("SF DF CHO&NUTFL 75", "Classic Clove"),
    ("JELLY 05HNGRASSRTD", "GFK Social Red"),
    ("MAGICMASALA90", "GF Spl Mint"),
    ("AS BESAN 500G", "GFP Blue Mint Switch"),
    ("SF MOM MAGIC CA 05", "Players Mint"),
    ("SFDFCHOCOFILLS90", "GFK SOCIAL 2POD"),
)


@dataclass
class Backend:
    """Tables, storage and auth for one deployment mode."""
    mode: str
    users: Repository
    templates: Repository
    sku_mappings: Repository
    uploads: Repository
    sales_summary: Repository
    agent_mappings: Repository
    storage: FileStorage
    auth: AuthProvider

    @property
    def is_demo(self) -> bool:
        return self.mode == MODE_MEMORY


def build_memory_backend(seed: bool = True) -> Backend:
    """In-memory backend, optionally seeded with the demo accounts and SKU mappings."""
    users = InMemoryRepository(USERS_TABLE)
    sku_mappings = InMemoryRepository(SKU_MAPPING_TABLE)

    if seed:
        users.insert([
            {
                "id": account["id"],
                "username": account["username"],
                "role": account["role"],
                "status": "active",
            }
            for account in DEMO_ACCOUNTS
        ])
        sku_mappings.insert([
            {"market_sku": sku, "variant_description": variant, "created_by": "demo"}
            for sku, variant in DEMO_SKU_MAPPINGS
        ])

    return Backend(
        mode=MODE_MEMORY,
        users=users,
        templates=InMemoryRepository(TEMPLATES_TABLE),
        sku_mappings=sku_mappings,
        uploads=InMemoryRepository(UPLOAD_HISTORY_TABLE),
        sales_summary=InMemoryRepository(SALES_SUMMARY_TABLE),
        agent_mappings=InMemoryRepository(SALESMAN_MAPPING_TABLE),
        storage=InMemoryStorage(),
        auth=DemoAuthProvider(),
    )


def build_supabase_backend(client=None) -> Backend:
    """Supabase tables, buckets and auth. The client connects lazily."""
    return Backend(
        mode=MODE_SUPABASE,
        users=SupabaseRepository(USERS_TABLE, client),
        templates=SupabaseRepository(TEMPLATES_TABLE, client),
        sku_mappings=SupabaseRepository(SKU_MAPPING_TABLE, client),
        uploads=SupabaseRepository(UPLOAD_HISTORY_TABLE, client),
        sales_summary=SupabaseRepository(SALES_SUMMARY_TABLE, client),
        agent_mappings=SupabaseRepository(SALESMAN_MAPPING_TABLE, client),
        storage=SupabaseStorage(client),
        auth=SupabaseAuthProvider(),
    )


@lru_cache()
def get_backend() -> Backend:
    """
    Get the process-wide backend.

    Call get_backend.cache_clear() to rebuild (tests do).
    """
    if get_settings().supabase_configured:
        backend = build_supabase_backend()
    else:
        backend = build_memory_backend()

    logger.info("backend_selected", mode=backend.mode)
    return backend
