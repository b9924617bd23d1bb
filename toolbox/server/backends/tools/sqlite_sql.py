import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ..base import Source
from ..error_codes import ErrorCode
from ..errors import (
    ConfigValidationError,
    IncompatibleSource,
    ParameterDefinitionError,
    QueryExecutionError,
    ResultCloseError,
    ResultMetadataError,
    RowIterationError,
    RowScanError,
    SourceNotFound,
)
from ..sources.sqlite import SOURCE_KIND as SQLITE_SOURCE_KIND, SQLitePool
from .base_tool import BaseTool, ToolConfig
from .context import CallContext, InvocationCancelled
from .manifest import Manifest, McpManifest
from .parameters import (
    Parameters,
    get_params,
    parse_parameters,
    process_parameters,
    resolve_template_params,
)

logger = logging.getLogger("SQLiteSQLTool")

KIND = "sqlite-sql"

REQUIRED_FIELDS = ("kind", "source", "description", "statement")

# VM instructions between cancellation checks
PROGRESS_OPCODES = 10000


@runtime_checkable
class SQLiteCompatibleSource(Protocol):
    def sqlite_db(self) -> SQLitePool:
        ...


# kinds that implement SQLiteCompatibleSource; used for error messages only
COMPATIBLE_SOURCES = (SQLITE_SOURCE_KIND,)


@dataclass(frozen=True)
class SQLiteSQLConfig(ToolConfig):
    name: str
    kind: str
    source: str
    description: str
    statement: str
    auth_required: Tuple[str, ...] = ()
    parameters: Parameters = ()
    template_parameters: Parameters = ()

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "SQLiteSQLConfig":
        """
        Decode one entry of the ``tools`` section.

        Raises:
            ConfigValidationError: missing or malformed fields
            ParameterDefinitionError: malformed parameter definitions
        """
        if not name:
            raise ConfigValidationError("tool name is required")
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        if missing:
            raise ConfigValidationError(f"tool {name!r} is missing required fields: {missing}")
        for key in REQUIRED_FIELDS:
            if not isinstance(data[key], str):
                raise ConfigValidationError(f"tool {name!r}: {key!r} must be a string")
        if data["kind"] != KIND:
            raise ConfigValidationError(f"tool {name!r}: kind {data['kind']!r} is not {KIND!r}")

        auth_required = data.get("authRequired") or []
        if not isinstance(auth_required, list) or not all(isinstance(a, str) for a in auth_required):
            raise ConfigValidationError(f"tool {name!r}: 'authRequired' must be a list of strings")

        parameters = parse_parameters(data.get("parameters"))
        template_parameters = parse_parameters(data.get("templateParameters"))
        shared = {p.name for p in parameters} & {p.name for p in template_parameters}
        if shared:
            raise ParameterDefinitionError(
                f"tool {name!r}: {sorted(shared)} declared as both standard and template parameters"
            )

        return cls(
            name=name,
            kind=data["kind"],
            source=data["source"],
            description=data["description"],
            statement=data["statement"],
            auth_required=tuple(auth_required),
            parameters=parameters,
            template_parameters=template_parameters,
        )

    def initialize(self, sources: Mapping[str, Source]) -> "SQLiteSQLTool":
        # verify source exists
        raw_source = sources.get(self.source)
        if raw_source is None:
            raise SourceNotFound(f"no source named {self.source!r} configured")

        # verify the source is compatible
        if not isinstance(raw_source, SQLiteCompatibleSource):
            raise IncompatibleSource(
                f"invalid source for {KIND!r} tool: source kind must be one of {list(COMPATIBLE_SOURCES)}",
                data={"source": self.source, "compatible_sources": list(COMPATIBLE_SOURCES)},
            )

        all_params, param_manifest, mcp_schema = process_parameters(
            self.template_parameters, self.parameters
        )

        return SQLiteSQLTool(
            name=self.name,
            kind=KIND,
            statement=self.statement,
            db=raw_source.sqlite_db(),
            parameters=self.parameters,
            template_parameters=self.template_parameters,
            all_params=all_params,
            auth_required=self.auth_required,
            tool_manifest=Manifest(
                description=self.description,
                parameters=param_manifest,
                auth_required=self.auth_required,
            ),
            tool_mcp_manifest=McpManifest(
                name=self.name,
                description=self.description,
                input_schema=mcp_schema,
            ),
        )

    def tool_config_kind(self) -> str:
        return KIND


@dataclass(frozen=True, eq=False)
class SQLiteSQLTool(BaseTool):
    """
    Runs one templated statement against a SQLite source.

    Immutable after ``SQLiteSQLConfig.initialize``; concurrent invocations
    share ``db``, which belongs to the source and is never closed here.
    """

    name: str
    kind: str
    statement: str
    db: SQLitePool = field(repr=False)
    parameters: Parameters = ()
    template_parameters: Parameters = ()
    all_params: Parameters = ()
    auth_required: Tuple[str, ...] = ()
    tool_manifest: Optional[Manifest] = field(default=None, repr=False)
    tool_mcp_manifest: Optional[McpManifest] = field(default=None, repr=False)

    async def invoke(self, ctx: CallContext, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        statement = resolve_template_params(self.template_parameters, self.statement, params)
        args = get_params(self.parameters, params).as_list()
        logger.debug(f"[{self.name}] trace_id={ctx.trace_id} statement={statement!r} args={args!r}")

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._run_query, ctx, statement, args)
        try:
            if ctx.timeout is not None:
                return await asyncio.wait_for(asyncio.shield(future), timeout=ctx.timeout)
            return await asyncio.shield(future)
        except asyncio.TimeoutError as exc:
            await self._abort(ctx, future)
            raise QueryExecutionError(
                f"query did not finish within {ctx.timeout}s",
                code=ErrorCode.TIMEOUT_ERROR,
            ) from exc
        except asyncio.CancelledError:
            await self._abort(ctx, future)
            raise

    async def _abort(self, ctx: CallContext, future: "asyncio.Future"):
        """Interrupt the worker and wait until it has released its cursor."""
        ctx.cancel()
        await asyncio.wait([future])
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"[{self.name}] worker stopped after abort: {future.exception()!r}")

    def _run_query(self, ctx: CallContext, statement: str, args: Sequence[Any]) -> List[Dict[str, Any]]:
        try:
            ctx.raise_if_cancelled()
            with self.db.connection() as conn:
                # interrupt() is a no-op between statements; the progress
                # handler catches a cancel that lands just before execute
                conn.set_progress_handler(lambda: 1 if ctx.cancelled else 0, PROGRESS_OPCODES)
                ctx.attach(conn.interrupt)
                try:
                    return self._query(ctx, conn, statement, args)
                finally:
                    ctx.detach()
                    conn.set_progress_handler(None, 0)
        except InvocationCancelled as exc:
            raise QueryExecutionError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise QueryExecutionError(str(exc)) from exc

    def _query(self, ctx: CallContext, conn: sqlite3.Connection, statement: str, args: Sequence[Any]):
        ctx.raise_if_cancelled()
        try:
            cursor = conn.execute(statement, args)
        # the driver raises OverflowError / UnicodeEncodeError while binding
        except (sqlite3.Error, OverflowError, UnicodeEncodeError) as exc:
            raise QueryExecutionError(
                str(exc),
                data={"statement": statement},
            ) from exc

        try:
            columns = self._columns(cursor)
            records = self._scan_rows(ctx, cursor, columns)
        except BaseException:
            try:
                cursor.close()
            except sqlite3.Error as close_exc:
                logger.warning(f"[{self.name}] unable to close rows after failure: {close_exc}")
            raise

        try:
            cursor.close()
        except sqlite3.Error as exc:
            raise ResultCloseError(str(exc)) from exc
        return records

    @staticmethod
    def _columns(cursor: sqlite3.Cursor) -> List[str]:
        try:
            description = cursor.description
        except sqlite3.Error as exc:
            raise ResultMetadataError(str(exc)) from exc
        # statements without a result set (DDL, DML) have no description
        if description is None:
            return []
        try:
            return [column[0] for column in description]
        except (TypeError, IndexError) as exc:
            raise ResultMetadataError(str(exc)) from exc

    @staticmethod
    def _scan_rows(ctx: CallContext, cursor: sqlite3.Cursor, columns: List[str]) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []
        if not columns:
            return result

        values: List[Any] = [None] * len(columns)
        index = 0
        while True:
            ctx.raise_if_cancelled()
            try:
                row = cursor.fetchone()
            except sqlite3.Error as exc:
                raise RowIterationError(str(exc)) from exc
            except Exception as exc:
                # raised by registered type converters
                raise RowScanError(f"row {index}: {exc}") from exc
            if row is None:
                break

            if len(row) != len(values):
                raise RowScanError(f"row {index}: expected {len(values)} columns, got {len(row)}")
            values[:] = row

            # NULL columns are kept as explicit None entries
            result.append({col: values[i] for i, col in enumerate(columns)})
            index += 1

        return result

    def manifest(self) -> Manifest:
        return self.tool_manifest

    def mcp_manifest(self) -> McpManifest:
        return self.tool_mcp_manifest
