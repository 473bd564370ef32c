"""Extraction Pipeline - turns unstructured text into collections, records and graphs.

A run moves through six one-directional stages, each announcing itself
with one progress event:

    collect -> parse -> analyze -> suggest -> create -> summarize

Stages 1-4 are fatal on error: the run emits a single ``error`` event and
then ``done``. In stage 5 every suggestion (and every record inside one)
is an isolated unit; a failed unit is logged and skipped and the run goes
on. Suggestions are materialized strictly one after another because a
later one may rely on a collection an earlier one just created.
"""

from __future__ import annotations

import asyncio
import html
import json
import logging
import re
from dataclasses import dataclass, field
from typing import (
    AsyncGenerator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from ..models.collection import (
    CollectionCreate,
    FieldDefinition,
    FieldType,
    coerce_field_type,
)
from ..models.events import ExtractionEvent, SuggestionPreview
from ..models.extraction import (
    CollaboratorSelection,
    CollectionSuggestion,
    ExtractionOutput,
    ExtractionRequest,
    GraphSuggestion,
    SourceDocument,
    StandaloneRecordsSuggestion,
    Suggestion,
    BOUNDARY_VIEW_STYLES,
)
from ..models.graph import GraphEdge, GraphNode
from ..models.scope import TargetScope
from .collection_service import CollectionService
from .config import AppConfig, get_config
from .database import DatabaseService
from .errors import ContextoryError, EntityWriteError, NotFoundError
from .extraction_schema import SCHEMA_NAME, extraction_json_schema, validate_extraction
from .graph_model import new_id
from .graph_service import GraphService
from .prompt_loader import EXTRACTION_SYSTEM_PROMPT, PromptLoader
from .structured_generator import StructuredGenerator, get_generator

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 60
MAX_FIELD_NAME_LENGTH = 128

ConfirmCallback = Callable[[List[Suggestion]], Awaitable[Sequence[int]]]
GeneratorFactory = Callable[[CollaboratorSelection, AppConfig], StructuredGenerator]

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_INLINE_SPACE = re.compile(r"[ \t\f\v\r]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


# ----------------------------------------------------------------------
# Stage helpers (pure)
# ----------------------------------------------------------------------


def collect_sources(sources: Sequence[SourceDocument]) -> List[Tuple[str, str]]:
    """``(name, text)`` for every source that has content or a summary."""
    collected = []
    for source in sources:
        text = (source.content or "").strip() or (source.summary or "").strip()
        if not text:
            logger.debug(f"Skipping empty source '{source.name}'")
            continue
        collected.append((source.name, text))
    return collected


def strip_markup(text: str) -> str:
    """Reduce HTML-ish input to plain text, keeping line structure."""
    text = _SCRIPT_STYLE.sub("", text)
    text = _TAG.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    lines = [_INLINE_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def prepare_content(sources: Sequence[Tuple[str, str]], max_chars: int) -> str:
    """Strip each source to plain text, head it with its name, join and cap.

    A source whose text is empty once markup is removed contributes nothing.
    """
    sections = []
    for name, text in sources:
        plain = strip_markup(text)
        if plain:
            sections.append(f"## {name}\n{plain}")
    return "\n\n".join(sections)[:max_chars].strip()


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def preview(suggestion: Suggestion) -> SuggestionPreview:
    return SuggestionPreview(
        type=suggestion.kind,
        title=suggestion.title,
        icon=suggestion.icon,
        description=suggestion.description,
    )


def build_field_definitions(suggestion: CollectionSuggestion) -> List[FieldDefinition]:
    """One definition per declared field, with positional ids ``field_<index>``.

    A field whose name is blank or too long is dropped; its index is not reused.
    """
    definitions = []
    for index, spec in enumerate(suggestion.fields):
        name = spec.name
        if not name.strip() or len(name) > MAX_FIELD_NAME_LENGTH:
            logger.debug(f"Dropping field {index} with unusable name {spec.name!r}")
            continue
        definitions.append(
            FieldDefinition(id=f"field_{index}", name=name, type=coerce_field_type(spec.type))
        )
    return definitions


def resolve_field_values(
    definitions: Sequence[FieldDefinition], pairs: Sequence[Tuple[str, str]]
) -> Dict[str, str]:
    """Map ``(field name, value)`` pairs onto field-definition ids.

    Names are matched exactly (case-sensitive) against declared names; the
    first declaration wins on duplicates and unmatched names are dropped.
    """
    by_name: Dict[str, str] = {}
    for definition in definitions:
        by_name.setdefault(definition.name, definition.id)
    values: Dict[str, str] = {}
    for name, value in pairs:
        field_id = by_name.get(name)
        if field_id is None:
            logger.debug(f"Dropping value for undeclared field '{name}'")
            continue
        values[field_id] = value
    return values


def resolve_graph(
    suggestion: GraphSuggestion, id_factory: Callable[[], str] = new_id
) -> Tuple[List[GraphNode], List[GraphEdge]]:
    """Turn index-addressed nodes/edges into id-addressed ones.

    The index -> id table is allocated for every node before any node is
    built. A parent index that is out of range, points at the node itself,
    or would close a cycle is dropped (the node becomes a root). An edge
    with an out-of-range endpoint, a self-loop or a repeated unordered pair
    is dropped.
    """
    table = [id_factory() for _ in suggestion.nodes]
    size = len(table)
    parents: Dict[int, Optional[int]] = {}

    def closes_cycle(index: int, parent: int) -> bool:
        current: Optional[int] = parent
        for _ in range(size + 1):
            if current is None:
                return False
            if current == index:
                return True
            current = parents.get(current)
        return True

    nodes: List[GraphNode] = []
    for index, raw in enumerate(suggestion.nodes):
        parent = raw.parent_index
        if parent is not None and (not 0 <= parent < size or closes_cycle(index, parent)):
            logger.debug(f"Dropping parent index {parent} of node {index}")
            parent = None
        parents[index] = parent
        nodes.append(
            GraphNode(
                id=table[index],
                content=raw.content,
                parent_id=table[parent] if parent is not None else None,
                metadata=raw.metadata.as_node_metadata() if raw.metadata else {},
            )
        )

    edges: List[GraphEdge] = []
    seen: Set[frozenset] = set()
    for raw_edge in suggestion.edges:
        source, target = raw_edge.source_index, raw_edge.target_index
        if not (0 <= source < size and 0 <= target < size) or source == target:
            logger.debug(f"Dropping edge {source} -> {target}")
            continue
        pair = frozenset((source, target))
        if pair in seen:
            continue
        seen.add(pair)
        edges.append(GraphEdge(id=id_factory(), source_id=table[source], target_id=table[target]))
    return nodes, edges


def _event(**kwargs) -> ExtractionEvent:
    return ExtractionEvent(**kwargs)


def _step(step: str, message: str) -> ExtractionEvent:
    return _event(type="step", step=step, message=message)


def _delta(content: str) -> ExtractionEvent:
    return _event(type="delta", content=content)


def _done() -> ExtractionEvent:
    return _event(type="done")


@dataclass
class CreatedEntity:
    kind: str
    id: str
    name: str
    group: str


@dataclass
class MaterializationReport:
    """Tally of stage 5, used for the final summary."""

    created: List[CreatedEntity] = field(default_factory=list)
    failed_units: int = 0

    def count(self, kind: str) -> int:
        return sum(1 for entity in self.created if entity.kind == kind)

    @property
    def total(self) -> int:
        return len(self.created)

    def summary_text(self, narrative: str = "") -> str:
        parts = []
        for kind, noun in (("collection", "collection"), ("record", "record"), ("graph", "graph")):
            count = self.count(kind)
            if count:
                parts.append(_plural(count, noun))
        if not parts:
            return "Analysis complete but no items were created."
        return f"Created {', '.join(parts)}. {narrative or ''}".strip()


class PipelineCancelled(Exception):
    """Raised internally when the caller abandoned the run."""


# ----------------------------------------------------------------------
# Pipeline
# ----------------------------------------------------------------------


class ExtractionPipeline:
    """Orchestrates extraction runs against the store and a text generator.

    Example:
        >>> pipeline = ExtractionPipeline(CollectionService(db), GraphService(db))
        >>> async for event in pipeline.run(request):
        ...     print(event.to_wire())
    """

    def __init__(
        self,
        collection_service: CollectionService,
        graph_service: GraphService,
        config: Optional[AppConfig] = None,
        prompt_loader: Optional[PromptLoader] = None,
        generator_factory: GeneratorFactory = get_generator,
    ):
        self._collections = collection_service
        self._graphs = graph_service
        self._config = config or get_config()
        self._prompts = prompt_loader or PromptLoader()
        self._generator_factory = generator_factory

    # ------------------------------------------------------------------
    # Stages 1-4
    # ------------------------------------------------------------------

    def _parse(self, request: ExtractionRequest) -> str:
        collected = collect_sources(request.sources)
        return prepare_content(collected, self._config.extraction_max_chars)

    async def _existing_collections(self, scope: TargetScope) -> List[Dict[str, str]]:
        try:
            collections = await asyncio.to_thread(self._collections.list_collections, scope)
        except ContextoryError as exc:
            logger.warning(f"Existing collection lookup failed, continuing without it: {exc.message}")
            return []
        return [{"id": c.id, "name": c.name, "icon": c.icon} for c in collections]

    def build_prompt(self, content: str, existing: Sequence[Dict[str, str]]) -> str:
        system_prompt = self._prompts.load(
            EXTRACTION_SYSTEM_PROMPT,
            {
                "existing_collections": list(existing),
                "view_styles": list(BOUNDARY_VIEW_STYLES),
                "field_types": [t.value for t in FieldType if t is not FieldType.REFERENCE],
                "max_name_length": MAX_NAME_LENGTH,
            },
        )
        return f"{system_prompt}\n\n--- CONTENT TO ANALYZE ---\n{content}\n--- END CONTENT ---"

    async def _analyze(self, content: str, request: ExtractionRequest) -> ExtractionOutput:
        existing = await self._existing_collections(request.target_scope)
        generator = self._generator_factory(request.collaborator, self._config)
        logger.info(
            f"Analyzing {len(content)} chars with {generator.provider}/{generator.model} "
            f"({len(existing)} existing collections)"
        )
        raw = await generator.generate(
            self.build_prompt(content, existing), extraction_json_schema(), SCHEMA_NAME
        )
        output = validate_extraction(raw)
        logger.info(f"Extraction produced {len(output.suggestions)} suggestions")
        return output

    async def suggest(self, request: ExtractionRequest) -> ExtractionOutput:
        """Stages 1-4 without streaming; returns the flat suggestions for review."""
        content = self._parse(request)
        if not content:
            return ExtractionOutput(summary="No analyzable content found in sources.", suggestions=[])
        return await self._analyze(content, request)

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        request: ExtractionRequest,
        confirm: Optional[ConfirmCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[ExtractionEvent, None]:
        """Stream a complete run.

        ``confirm`` receives the validated suggestions and returns the
        indices to materialize. Without it, ``request.confirm_indices`` is
        used, and when that is None every suggestion is confirmed.
        Cancellation is checked before every stage; a cancelled run stops
        without further events.
        """
        try:
            if self._cancelled(cancel_event):
                logger.info("Extraction run cancelled before it started")
                return
            count = len(request.sources)
            yield _step("collect", f"Collecting {_plural(count, 'source')}...")
            collected = collect_sources(request.sources)

            if self._cancelled(cancel_event):
                return
            yield _step("parse", "Parsing content...")
            content = prepare_content(collected, self._config.extraction_max_chars)
            if not content:
                yield _delta("No analyzable content found in sources.")
                yield _done()
                return

            if self._cancelled(cancel_event):
                return
            yield _step("analyze", "Analyzing structure...")
            if self._cancelled(cancel_event):
                return
            output = await self._analyze(content, request)
            suggestions = [raw.to_suggestion() for raw in output.suggestions]

            if self._cancelled(cancel_event):
                logger.info("Extraction run cancelled after analysis")
                return
            if not suggestions:
                yield _delta("No structured data found to extract.")
                yield _done()
                return
            yield _event(type="suggestions", suggestions=[preview(s) for s in suggestions])

            if confirm is not None:
                indices = await confirm(suggestions)
            elif request.confirm_indices is not None:
                indices = request.confirm_indices
            else:
                indices = range(len(suggestions))
            wanted = set(indices)
            selected = [s for i, s in enumerate(suggestions) if i in wanted]
        except ContextoryError as exc:
            logger.error(f"Extraction run failed: {exc.message}")
            yield _event(type="error", error=exc.message)
            yield _done()
            return
        except Exception as exc:
            logger.exception("Extraction run failed")
            yield _event(type="error", error=f"Analysis failed: {exc}")
            yield _done()
            return

        if self._cancelled(cancel_event):
            logger.info("Extraction run cancelled before materialization")
            return

        if not selected:
            yield _delta("No suggestions were confirmed.")
            yield _done()
            return

        async for event in self.materialize(
            selected, request.target_scope, output.summary, cancel_event
        ):
            yield event

    # ------------------------------------------------------------------
    # Stages 5-6
    # ------------------------------------------------------------------

    async def materialize(
        self,
        suggestions: Sequence[Suggestion],
        scope: TargetScope,
        summary: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[ExtractionEvent, None]:
        """Create durable entities for confirmed suggestions, in order."""
        report = MaterializationReport()
        yield _step("create", f"Creating {_plural(len(suggestions), 'suggestion')}...")

        try:
            for suggestion in suggestions:
                self._check_cancel(cancel_event)
                try:
                    async for event in self._materialize_one(suggestion, scope, report, cancel_event):
                        yield event
                except PipelineCancelled:
                    raise
                except ContextoryError as exc:
                    report.failed_units += 1
                    logger.warning(f"Skipping suggestion '{suggestion.title}': {exc.message}")
                except Exception:
                    report.failed_units += 1
                    logger.exception(f"Skipping suggestion '{suggestion.title}'")
        except PipelineCancelled:
            logger.info(
                f"Extraction run cancelled after creating {report.total} entities; "
                "committed writes are kept"
            )
            return

        logger.info(
            f"Materialization finished: {report.total} created, {report.failed_units} failed units"
        )
        yield _delta(report.summary_text(summary))
        yield _done()

    @staticmethod
    def _cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def _check_cancel(self, cancel_event: Optional[asyncio.Event]) -> None:
        if self._cancelled(cancel_event):
            raise PipelineCancelled()

    def _created(
        self,
        report: MaterializationReport,
        suggestion: Suggestion,
        kind: str,
        entity_id: str,
        name: str,
    ) -> ExtractionEvent:
        report.created.append(CreatedEntity(kind=kind, id=entity_id, name=name, group=suggestion.title))
        return _event(
            type="tool_result",
            tool_name=f"create_{kind}",
            tool_output=json.dumps({"id": entity_id, "name": name}),
            group=suggestion.title,
            group_icon=suggestion.icon,
        )

    async def _materialize_one(
        self,
        suggestion: Suggestion,
        scope: TargetScope,
        report: MaterializationReport,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[ExtractionEvent, None]:
        if isinstance(suggestion, CollectionSuggestion):
            async for event in self._create_collection(suggestion, scope, report, cancel_event):
                yield event
        elif isinstance(suggestion, GraphSuggestion):
            async for event in self._create_graph(suggestion, scope, report, cancel_event):
                yield event
        elif isinstance(suggestion, StandaloneRecordsSuggestion):
            async for event in self._create_standalone(suggestion, scope, report, cancel_event):
                yield event

    async def _create_records(
        self,
        suggestion: Suggestion,
        collection_id: str,
        entries: Sequence[Tuple[str, Dict[str, str]]],
        scope: TargetScope,
        report: MaterializationReport,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[ExtractionEvent, None]:
        for name, values in entries:
            self._check_cancel(cancel_event)
            try:
                record = await asyncio.to_thread(
                    self._collections.create_record,
                    collection_id,
                    name,
                    values,
                    scope.workspace_id,
                    scope.project_id,
                )
            except ContextoryError as exc:
                report.failed_units += 1
                logger.warning(f"Skipping record '{name}' of '{suggestion.title}': {exc.message}")
                continue
            except Exception:
                report.failed_units += 1
                logger.exception(f"Skipping record '{name}' of '{suggestion.title}'")
                continue
            yield self._created(report, suggestion, "record", record.id, record.name)

    async def _create_collection(
        self,
        suggestion: CollectionSuggestion,
        scope: TargetScope,
        report: MaterializationReport,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[ExtractionEvent, None]:
        definitions = build_field_definitions(suggestion)
        payload = CollectionCreate(
            name=suggestion.collection_name,
            icon=suggestion.icon,
            description=suggestion.description,
            fields=definitions,
            available_global=scope.is_global,
            available_in_workspaces=[scope.workspace_id] if scope.workspace_id else [],
            available_in_projects=[scope.project_id] if scope.project_id else [],
        )
        self._check_cancel(cancel_event)
        collection = await asyncio.to_thread(self._collections.create_collection, payload)
        yield self._created(report, suggestion, "collection", collection.id, collection.name)

        entries = [
            (
                item.name,
                resolve_field_values(definitions, [(f.field, f.value) for f in item.fields or []]),
            )
            for item in suggestion.items
        ]
        async for event in self._create_records(
            suggestion, collection.id, entries, scope, report, cancel_event
        ):
            yield event

    async def _create_graph(
        self,
        suggestion: GraphSuggestion,
        scope: TargetScope,
        report: MaterializationReport,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[ExtractionEvent, None]:
        nodes, edges = resolve_graph(suggestion)
        self._check_cancel(cancel_event)
        graph = await asyncio.to_thread(
            self._graphs.create_graph,
            suggestion.graph_name,
            suggestion.style.value,
            scope,
            suggestion.icon,
            nodes,
            edges,
        )
        yield self._created(report, suggestion, "graph", graph.id, graph.name)

    async def _resolve_target(
        self, suggestion: StandaloneRecordsSuggestion, scope: TargetScope
    ) -> str:
        if suggestion.target_collection_id:
            try:
                collection = await asyncio.to_thread(
                    self._collections.get_collection, suggestion.target_collection_id
                )
                return collection.id
            except NotFoundError:
                logger.debug(
                    f"Target collection id {suggestion.target_collection_id} not found, trying name"
                )
        if suggestion.target_collection_name:
            collection = await asyncio.to_thread(
                self._collections.find_collection_by_name, scope, suggestion.target_collection_name
            )
            if collection is not None:
                return collection.id
        raise EntityWriteError(
            f"Target collection for '{suggestion.title}' does not exist",
            {
                "target_collection_id": suggestion.target_collection_id,
                "target_collection_name": suggestion.target_collection_name,
            },
        )

    async def _create_standalone(
        self,
        suggestion: StandaloneRecordsSuggestion,
        scope: TargetScope,
        report: MaterializationReport,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncGenerator[ExtractionEvent, None]:
        collection_id = await self._resolve_target(suggestion, scope)
        entries = [(item.name, {}) for item in suggestion.items]
        async for event in self._create_records(
            suggestion, collection_id, entries, scope, report, cancel_event
        ):
            yield event


def get_extraction_pipeline() -> ExtractionPipeline:
    """Dependency provider wiring the pipeline to the configured store."""
    db = DatabaseService()
    return ExtractionPipeline(CollectionService(db), GraphService(db))


__all__ = [
    "ExtractionPipeline",
    "get_extraction_pipeline",
    "MaterializationReport",
    "CreatedEntity",
    "ConfirmCallback",
    "collect_sources",
    "strip_markup",
    "prepare_content",
    "build_field_definitions",
    "resolve_field_values",
    "resolve_graph",
    "preview",
]
