"""Catalog access: connectors, the remote mirror and read-only book queries."""

from weblibri.catalog.connectors import DBConnector, LocalSource, RemoteMirrorSource, create_connector
from weblibri.catalog.errors import (
    MirrorCredentialsError,
    MirrorError,
    MirrorErrorKind,
    MirrorKeyNotFoundError,
    MirrorTransportError,
)
from weblibri.catalog.mirror import MetadataMirror
