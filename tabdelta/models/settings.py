"""Extraction configuration model.

This module defines the validated configuration for one extraction run:
the source connection, which tables to consider, which of them are type-2
tables, which column names denote a delta timestamp, and the export tuning
knobs.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator


class ExtractionConfig(BaseModel):
    """Configuration for an extraction run.

    Either ``server`` (SQL Server host) or ``connection`` (a full SQLAlchemy
    URL) must be given, together with the catalog name in ``database``.

    Examples:
        Minimal SQL Server configuration:
        >>> ExtractionConfig(server="db01", database="ServiceManager")

        SQLite source with type-2 and timestamp lists:
        >>> ExtractionConfig(
        ...     connection="sqlite:///source.db",
        ...     database="main",
        ...     type2=["CUSTOMERS"],
        ...     timestamps=["LASTMODIFIED"],
        ... )
    """

    # Source connection
    connection: Optional[str] = PydanticField(
        None,
        description="SQLAlchemy connection URL (overrides server/instance/credentials)",
    )

    server: Optional[str] = PydanticField(None, description="Database server host")

    instance: Optional[str] = PydanticField(None, description="Named SQL Server instance")

    username: Optional[str] = PydanticField(None, description="Login name")

    password: Optional[str] = PydanticField(None, description="Login password")

    password_encoding: str = PydanticField(
        "plain",
        description="How the password is stored: 'plain' or 'base64'",
    )

    database: str = PydanticField(..., description="Catalog (database) name")

    crypto: Optional[str] = PydanticField(
        None,
        description="Driver encryption option (e.g. 'true', 'disable')",
    )

    driver: str = PydanticField(
        "ODBC Driver 18 for SQL Server",
        description="ODBC driver used for SQL Server connections",
    )

    connector: Optional[str] = PydanticField(
        None,
        description="Dotted path of a custom connector class",
    )

    # Table selection
    mode: str = PydanticField(
        "blacklist",
        description="Table selection mode: 'whitelist' or 'blacklist'",
    )

    whitelist: list[str] = PydanticField(
        default_factory=list,
        description="Tables to export in whitelist mode",
    )

    blacklist: list[str] = PydanticField(
        default_factory=list,
        description="Tables to leave out in blacklist mode",
    )

    type2: list[str] = PydanticField(
        default_factory=list,
        description="Tables that are always exported in full",
    )

    timestamps: list[str] = PydanticField(
        default_factory=list,
        description="Column names that qualify as delta (timestamp) columns",
    )

    # Export behaviour
    output_dir: Optional[str] = PydanticField(
        None,
        description="Directory holding one folder per run (defaults to TABDELTA_OUTPUT_DIR)",
    )

    workers: Optional[int] = PydanticField(
        None,
        description="Export worker pool size (defaults to TABDELTA_MAX_WORKERS)",
        gt=0,
    )

    dispatch_interval: Optional[float] = PydanticField(
        None,
        description="Pause in seconds before a worker starts each table",
        ge=0.0,
    )

    table_timeout: Optional[float] = PydanticField(
        None,
        description="Deadline in seconds for a single table export",
        gt=0.0,
    )

    run_timeout: Optional[float] = PydanticField(
        None,
        description="Deadline in seconds for the whole export stage",
        gt=0.0,
    )

    delta_bound: str = PydanticField(
        "inclusive",
        description="Delta filter bound: 'inclusive' (>=) or 'exclusive' (>)",
    )

    catalog_errors: str = PydanticField(
        "fail",
        description="Catalog query failure policy: 'fail' aborts the run, 'skip' drops the table",
    )

    large_binary_types: list[str] = PydanticField(
        default_factory=lambda: ["image"],
        description="Declared types whose content is replaced by the placeholder",
    )

    binary_placeholder: str = PydanticField(
        "{img}",
        description="Literal emitted in place of large binary columns",
    )

    flush_every_row: bool = PydanticField(
        True,
        description="Flush the compressed stream after every row",
    )

    echo: bool = PydanticField(False, description="Log emitted SQL through SQLAlchemy")

    model_config = {"extra": "forbid"}

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        """Validate table selection mode."""
        valid_modes = {"whitelist", "blacklist"}
        if v not in valid_modes:
            raise ValueError(f"Invalid mode: {v}. Must be one of: {valid_modes}")
        return v

    @field_validator("whitelist")
    @classmethod
    def validate_whitelist(cls, v: list[str]) -> list[str]:
        """Reject a table named twice; names are compared case-insensitively."""
        seen: set[str] = set()
        repeated = []
        for name in v:
            if name.casefold() in seen:
                repeated.append(name)
            seen.add(name.casefold())
        if repeated:
            raise ValueError(f"Tables listed more than once in whitelist: {repeated}")
        return v

    @field_validator("password_encoding")
    @classmethod
    def validate_password_encoding(cls, v: str) -> str:
        """Validate password encoding."""
        valid_encodings = {"plain", "base64"}
        if v not in valid_encodings:
            raise ValueError(
                f"Invalid password_encoding: {v}. Must be one of: {valid_encodings}"
            )
        return v

    @field_validator("delta_bound")
    @classmethod
    def validate_delta_bound(cls, v: str) -> str:
        """Validate delta bound."""
        valid_bounds = {"inclusive", "exclusive"}
        if v not in valid_bounds:
            raise ValueError(f"Invalid delta_bound: {v}. Must be one of: {valid_bounds}")
        return v

    @field_validator("catalog_errors")
    @classmethod
    def validate_catalog_errors(cls, v: str) -> str:
        """Validate catalog error policy."""
        valid_policies = {"fail", "skip"}
        if v not in valid_policies:
            raise ValueError(f"Invalid catalog_errors: {v}. Must be one of: {valid_policies}")
        return v

    @model_validator(mode="after")
    def validate_source(self) -> ExtractionConfig:
        """Require a way to reach the source and a decodable password."""
        if not self.connection and not self.server:
            raise ValueError("Either 'server' or 'connection' must be specified")
        if self.password and self.password_encoding == "base64":
            try:
                base64.b64decode(self.password, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"password is not valid base64: {e}") from e
        return self

    @property
    def decoded_password(self) -> Optional[str]:
        """Password in clear text."""
        if self.password is None or self.password_encoding == "plain":
            return self.password
        return base64.b64decode(self.password).decode("utf-8")

    @property
    def server_instance(self) -> Optional[str]:
        """Server name with the named instance appended, if any."""
        if not self.server:
            return None
        if self.instance:
            return f"{self.server}\\{self.instance}"
        return self.server

    @property
    def type2_names(self) -> set[str]:
        """Type-2 table names, case-folded."""
        return {name.casefold() for name in self.type2}

    @property
    def timestamp_names(self) -> set[str]:
        """Delta column names, case-folded."""
        return {name.casefold() for name in self.timestamps}

    @property
    def binary_type_names(self) -> set[str]:
        """Large binary type names, lower-cased."""
        return {name.lower() for name in self.large_binary_types}

    def redacted(self) -> dict[str, Any]:
        """Configuration as a dict with the password masked."""
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "***"
        return data
