"""CDF ingestion: dependency stack, engine, stubs, serializer, closure fetch."""

from .context import ImportContext
from .engine import IngestionEngine
from .hooks import IngestionHooks
from .importer import CdfImporter
from .serializer import CdfSerializer, SerializerHooks
from .stack import DependencyStack, EntityWrapper, WrapperState
from .stubs import CreateStubs, StubTracker

__all__ = [
    "ImportContext",
    "IngestionEngine",
    "IngestionHooks",
    "CdfImporter",
    "CdfSerializer",
    "SerializerHooks",
    "DependencyStack",
    "EntityWrapper",
    "WrapperState",
    "CreateStubs",
    "StubTracker",
]
