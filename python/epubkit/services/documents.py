"""Raw document loader.

Fetches and parses one named file at a time, memoized per parse with
single-flight semantics. The loader never interprets document content.

Policy per document:
- required and absent: "<path> is missing" (an error, or a warning for
  container.xml, which has a conventional fallback)
- optional and absent: nothing
- present but unparsable: error "failed to parse xml: <path>", parser detail
  in an "xml at <path>" scope; the result is treated as absent
"""

from __future__ import annotations

from epubkit.diagnostics import Diagnostic, Diagnostics, Severity, ignored
from epubkit.errors import ContractViolationError
from epubkit.logging import get_logger
from epubkit.schemas.documents import DocumentKind, UnvalidatedDocument
from epubkit.services.epub_schemas import EPUB_MIMETYPE
from epubkit.services.single_flight import SingleFlight
from epubkit.services.xml import parse_xml
from epubkit.storage.client import FileProviderBase

logger = get_logger(__name__)

MIMETYPE_PATH = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"
ENCRYPTION_PATH = "META-INF/encryption.xml"
MANIFEST_PATH = "META-INF/manifest.xml"
METADATA_PATH = "META-INF/metadata.xml"
RIGHTS_PATH = "META-INF/rights.xml"
SIGNATURES_PATH = "META-INF/signatures.xml"


class DocumentLoader:
    """Memoized accessors for the documents of one EPUB.

    Args:
        provider: File-access collaborator.
        diags: Scope receiving loader findings.
    """

    def __init__(self, provider: FileProviderBase, diags: Diagnostics):
        self.provider = provider
        self._diags = diags
        self._mimetype: SingleFlight[str | None] = SingleFlight(self._load_mimetype, "mimetype")
        self._documents: dict[str, SingleFlight[UnvalidatedDocument | None]] = {}

    async def mimetype(self) -> str | None:
        return await self._mimetype.get()

    async def container(self, diags: Diagnostics | None = None) -> UnvalidatedDocument | None:
        # a default rootfile exists, so absence is only a warning
        return await self.xml_at(
            CONTAINER_PATH,
            required=True,
            kind=DocumentKind.CONTAINER,
            diags=diags,
            missing=Severity.WARNING,
        )

    async def encryption(self) -> UnvalidatedDocument | None:
        return await self.xml_at(ENCRYPTION_PATH, required=False, kind=DocumentKind.ENCRYPTION)

    async def manifest(self) -> UnvalidatedDocument | None:
        return await self.xml_at(MANIFEST_PATH, required=False, kind=DocumentKind.MANIFEST)

    async def metadata(self) -> UnvalidatedDocument | None:
        return await self.xml_at(METADATA_PATH, required=False, kind=DocumentKind.METADATA)

    async def rights(self) -> UnvalidatedDocument | None:
        return await self.xml_at(RIGHTS_PATH, required=False, kind=DocumentKind.RIGHTS)

    async def signatures(self) -> UnvalidatedDocument | None:
        return await self.xml_at(SIGNATURES_PATH, required=False, kind=DocumentKind.SIGNATURES)

    async def xml_at(
        self,
        path: str,
        *,
        required: bool = True,
        kind: DocumentKind = DocumentKind.XML,
        diags: Diagnostics | None = None,
        missing: Severity = Severity.ERROR,
    ) -> UnvalidatedDocument | None:
        """Load and parse the XML document at ``path``.

        The first request for a path decides its policy and the scope its
        findings go to (``diags``, default the loader's scope); later
        requests share the same result.
        """
        flight = self._documents.get(path)
        if flight is None:
            target = diags or self._diags
            flight = SingleFlight(
                lambda: self._load_xml(path, required, kind, target, missing), name=path
            )
            self._documents[path] = flight
        return await flight.get()

    def requested_paths(self) -> list[str]:
        return list(self._documents)

    async def read_text(
        self,
        path: str,
        *,
        required: bool,
        diags: Diagnostics | None = None,
        missing: Severity = Severity.ERROR,
    ) -> str | None:
        """Read text through the provider, enforcing its return contract."""
        diags = diags or self._diags
        text = await self.provider.read_text(path, diags if required else ignored())
        if text is not None and not isinstance(text, str):
            raise ContractViolationError(
                f"read_text returned {type(text).__name__} for {path}, expected str or None"
            )
        if text is None and required:
            diags.push(Diagnostic(f"{path} is missing", missing, {"path": path}))
        return text

    async def read_binary(
        self,
        path: str,
        *,
        required: bool,
        diags: Diagnostics | None = None,
    ) -> bytes | None:
        diags = diags or self._diags
        data = await self.provider.read_binary(path, diags if required else ignored())
        if data is not None and not isinstance(data, bytes):
            raise ContractViolationError(
                f"read_binary returned {type(data).__name__} for {path}, expected bytes or None"
            )
        if data is None and required:
            diags.error(f"{path} is missing", data={"path": path})
        return data

    async def _load_mimetype(self) -> str | None:
        text = await self.provider.read_text(MIMETYPE_PATH, self._diags)
        if text is not None and not isinstance(text, str):
            raise ContractViolationError(
                f"read_text returned {type(text).__name__} for {MIMETYPE_PATH}, "
                "expected str or None"
            )
        if text is None:
            self._diags.warning("mimetype is missing", data={"path": MIMETYPE_PATH})
        elif text != EPUB_MIMETYPE:
            self._diags.warning(f"mimetype is not {EPUB_MIMETYPE}: '{text}'")
        return text

    async def _load_xml(
        self,
        path: str,
        required: bool,
        kind: DocumentKind,
        diags: Diagnostics,
        missing: Severity,
    ) -> UnvalidatedDocument | None:
        text = await self.read_text(path, required=required, diags=diags, missing=missing)
        if text is None:
            return None
        tree = parse_xml(text, diags.scope(f"xml at {path}"))
        if tree is None:
            diags.error(f"failed to parse xml: {path}", data={"path": path})
            logger.info("document_parse_failed", path=path, kind=kind.value)
            return None
        logger.debug("document_loaded", path=path, kind=kind.value)
        return UnvalidatedDocument(kind=kind, full_path=path, tree=tree)
