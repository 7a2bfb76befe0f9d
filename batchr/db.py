"""HTTP client for the database's /sql and /import endpoints."""

from __future__ import annotations

import json
import os
from typing import Any, Iterable, Mapping, Sequence

import httpx

_FAILED_TRANSACTION = "not executed due to a failed transaction"


class DatabaseError(Exception):
    """Raised when a request fails or the database reports errors."""


def build_import_sql(batch: Iterable[str]) -> str:
    """Wrap queries in a single import transaction."""
    return "BEGIN TRANSACTION;\nOPTION IMPORT;\n{}\nCOMMIT TRANSACTION;".format(
        "\n".join(batch)
    )


def collect_errors(results: Iterable[Any]) -> list[str]:
    """Return the messages of every result whose status is ``ERR``."""
    errors = []
    for result in results:
        if not isinstance(result, dict) or "status" not in result:
            raise DatabaseError("Failed to parse result: no 'status' field")
        status = result["status"]
        if not isinstance(status, str):
            raise DatabaseError("Failed to parse result: 'status' field is not a string")
        if status != "ERR":
            continue
        if "result" not in result:
            raise DatabaseError("Failed to parse result: no 'result' field")
        message = result["result"]
        if not isinstance(message, str):
            raise DatabaseError("Failed to parse result: 'result' field is not a string")
        errors.append(message)
    return errors


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


class Database:
    """Connection settings plus an async HTTP client."""

    ENV_NAMES = (
        "SURREALDB_ENDPOINT",
        "SURREALDB_USERNAME",
        "SURREALDB_PASSWORD",
        "SURREALDB_NAMESPACE",
        "SURREALDB_DATABASE",
    )

    def __init__(
        self,
        endpoint: str,
        username: str,
        password: str,
        namespace: str,
        database: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.username = username
        self.password = password
        self.namespace = namespace
        self.database = database
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=None)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Database":
        """Build a connection from the SURREALDB_* environment variables."""
        env = os.environ if environ is None else environ
        values = []
        for name in cls.ENV_NAMES:
            if name not in env:
                raise DatabaseError(f"environment variable not found: {name}")
            values.append(env[name])
        return cls(*values)

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _post(self, path: str, body: str) -> httpx.Response:
        try:
            return await self.client.post(
                f"{self.endpoint}/{path}",
                headers={
                    "Accept": "application/json",
                    "Surreal-NS": self.namespace,
                    "Surreal-DB": self.database,
                },
                auth=(self.username, self.password),
                content=body.encode("utf-8"),
            )
        except httpx.HTTPError as exc:
            raise DatabaseError(str(exc)) from exc

    @staticmethod
    def _results(response: httpx.Response) -> list[Any]:
        try:
            results = response.json()
        except ValueError as exc:
            raise DatabaseError(f"Failed to decode response: {exc}") from exc
        if not isinstance(results, list):
            raise DatabaseError("Failed to decode response: expected a list of results")
        return results

    async def import_batch(self, table: str, completed: int, batch: Sequence[str]) -> None:
        """Import ``batch`` in one transaction.

        On reported errors the errors and queries are dumped to
        ``<table>-Errors.json`` in the working directory.
        """
        response = await self._post("import", build_import_sql(batch))
        if not response.is_success:
            raise DatabaseError(
                f"Failed to run import query; error: {_status_line(response)}\n{response.text}"
            )

        errors = collect_errors(self._results(response))
        if not errors:
            return

        with open(f"{table}-Errors.json", "w", encoding="utf-8") as dump:
            json.dump(
                {"errors": errors, "queries": list(batch)},
                dump,
                indent=2,
                ensure_ascii=False,
            )
            dump.flush()
            os.fsync(dump.fileno())

        if _FAILED_TRANSACTION not in errors[0]:
            raise DatabaseError(f"Error at index {completed}")
        raise DatabaseError("Error at unknown location.")

    async def sql(self, sql: str) -> None:
        """Run a plain SQL request and raise on any reported error."""
        response = await self._post("sql", sql)
        if not response.is_success:
            raise DatabaseError(
                f"Failed to run sql query; error: {_status_line(response)}\n"
                f"{response.text}\nSQL:{sql}"
            )

        errors = collect_errors(self._results(response))
        if errors:
            joined = "\n".join(errors)
            raise DatabaseError(f"Import errors:\n{joined}\nSQL:\n{sql}\n")