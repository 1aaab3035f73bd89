from __future__ import annotations

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError

from tutorhub.modules.appointments.repository import (
    is_idempotency_key_violation,
    is_overlap_violation,
    is_transient_error,
)


class FakeDriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _integrity(message: str, sqlstate: str | None = None) -> IntegrityError:
    return IntegrityError("INSERT INTO appointments ...", {}, FakeDriverError(message, sqlstate))


def _dbapi(sqlstate: str | None, *, connection_invalidated: bool = False) -> DBAPIError:
    return DBAPIError(
        "INSERT INTO appointments ...",
        {},
        FakeDriverError("driver failure", sqlstate),
        connection_invalidated=connection_invalidated,
    )


def test_exclusion_violation_is_overlap_by_sqlstate() -> None:
    assert is_overlap_violation(_integrity("conflicting key value", "23P01"))


def test_exclusion_violation_is_overlap_by_constraint_name() -> None:
    error = _integrity('violates exclusion constraint "ex_appointments_tutor_no_overlap"')

    assert is_overlap_violation(error)
    assert not is_idempotency_key_violation(error)


def test_duplicate_idempotency_key_is_recognized() -> None:
    error = _integrity('duplicate key value violates unique constraint "uq_appointments_idempotency_key"', "23505")

    assert is_idempotency_key_violation(error)
    assert not is_overlap_violation(error)


@pytest.mark.parametrize("sqlstate", ["40001", "40P01", "55P03", "57014", "08006", "08003"])
def test_transient_sqlstates(sqlstate: str) -> None:
    assert is_transient_error(_dbapi(sqlstate))


@pytest.mark.parametrize("sqlstate", ["23505", "42P01", None])
def test_permanent_errors_are_not_retried(sqlstate: str | None) -> None:
    assert not is_transient_error(_dbapi(sqlstate))


def test_invalidated_connection_is_transient() -> None:
    assert is_transient_error(_dbapi(None, connection_invalidated=True))
