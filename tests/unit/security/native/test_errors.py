"""
Unit-тесты для очереди ошибок и scope-примитивов (errors.py).

Проверяет:
- Формат кодов и строк записей
- CryptoErrorList: снимок, порядок, операции над концами
- ClearErrorOnReturn / MarkPopErrorOnReturn и их вложенность
- Запрет повторного входа и копирования
- Изоляцию очереди по потокам
"""

from __future__ import annotations

import copy
import pickle
import threading

import pytest

from src.security.native.core.exceptions import ErrorScopeError, HandleCopyError
from src.security.native.errors import (
    ClearErrorOnReturn,
    CryptoErrorList,
    EngineReason,
    ErrorLibrary,
    MarkPopErrorOnReturn,
    PemReason,
    RandReason,
    X509Reason,
    clear_errors,
    error_depth,
    error_library,
    error_mark,
    error_reason,
    error_snapshot,
    get_error,
    pack_error,
    peek_error,
    peek_last_error,
    pop_to_mark,
    push_error,
)


def _codes() -> list[int]:
    return [record.code for record in error_snapshot()]


# ==============================================================================
# CODES AND RECORDS
# ==============================================================================


class TestErrorCodes:
    def test_pack_and_unpack(self) -> None:
        code = pack_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)
        assert code == 0x13000074
        assert error_library(code) == ErrorLibrary.ENGINE
        assert error_reason(code) == EngineReason.NO_SUCH_ENGINE

    def test_record_string_format(self) -> None:
        push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)
        errors = CryptoErrorList()
        assert errors.peek_back() == "error:13000074:engine routines::no such engine"

    def test_record_detail_is_appended(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE, "Expecting: CERTIFICATE")
        text = CryptoErrorList().peek_back()
        assert text.endswith("::no start line:Expecting: CERTIFICATE")

    def test_unknown_library_and_reason(self) -> None:
        push_error(200, 7)
        assert CryptoErrorList().peek_back().endswith(":lib(200)::reason(7)")


class TestQueue:
    def test_peek_and_get_follow_fifo(self) -> None:
        first = push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        last = push_error(ErrorLibrary.X509, X509Reason.NO_CERTIFICATE)

        assert peek_error() == first
        assert peek_last_error() == last
        assert get_error() == first
        assert _codes() == [last]

    def test_empty_queue_returns_zero(self) -> None:
        assert peek_error() == 0
        assert peek_last_error() == 0
        assert get_error() == 0

    def test_pop_to_mark_keeps_older_records(self) -> None:
        kept = push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT)
        mark = error_mark()
        push_error(ErrorLibrary.RAND, RandReason.ERROR_RETRIEVING_ENTROPY)
        push_error(ErrorLibrary.RAND, RandReason.ARGUMENT_OUT_OF_RANGE)

        assert pop_to_mark(mark) == 2
        assert _codes() == [kept]

    def test_queue_is_thread_local(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT)
        seen: list[int] = []

        def worker() -> None:
            seen.append(error_depth())
            push_error(ErrorLibrary.RAND, RandReason.ARGUMENT_OUT_OF_RANGE)
            seen.append(error_depth())

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert seen == [0, 1]
        assert error_depth() == 1


# ==============================================================================
# CRYPTO ERROR LIST
# ==============================================================================


class TestCryptoErrorList:
    def test_capture_on_construct_is_oldest_first(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)

        errors = CryptoErrorList()

        assert errors.size() == 2
        assert "no start line" in next(iter(errors))
        assert "no such engine" in errors.peek_back()

    def test_capture_does_not_modify_queue(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        CryptoErrorList()
        assert error_depth() == 1

    def test_repeated_capture_is_stable(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        push_error(ErrorLibrary.X509, X509Reason.MALFORMED_FIELD)
        first = CryptoErrorList(CryptoErrorList.Option.NONE)
        second = CryptoErrorList(CryptoErrorList.Option.NONE)

        first.capture()
        second.capture()

        assert first == second
        assert list(first) == list(second)

    def test_option_none_starts_empty(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        assert errors.empty()
        assert len(errors) == 0

    def test_capture_replaces_contents(self) -> None:
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        errors.add("stale")
        errors.capture()
        assert errors.empty()

    def test_end_operations(self) -> None:
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        for message in ("a", "b", "c"):
            errors.add(message)

        assert list(reversed(errors)) == ["c", "b", "a"]
        assert errors.pop_front() == "a"
        assert errors.pop_back() == "c"
        assert errors.peek_back() == "b"
        assert errors.size() == 1

    def test_empty_list_operations(self) -> None:
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        assert errors.pop_back() is None
        assert errors.pop_front() is None
        with pytest.raises(IndexError):
            errors.peek_back()

    def test_list_is_unhashable(self) -> None:
        with pytest.raises(TypeError):
            hash(CryptoErrorList(CryptoErrorList.Option.NONE))


# ==============================================================================
# SCOPE GUARDS
# ==============================================================================


class TestClearErrorOnReturn:
    def test_clears_whole_queue_on_exit(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        with ClearErrorOnReturn():
            push_error(ErrorLibrary.X509, X509Reason.MALFORMED_FIELD)
        assert error_depth() == 0

    def test_reports_errors_raised_inside_scope(self) -> None:
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        with ClearErrorOnReturn(errors):
            push_error(ErrorLibrary.ENGINE, EngineReason.NOT_INITIALISED)
        assert errors.peek_back() == "error:13000075:engine routines::not initialised"

    def test_captures_on_entry(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        with ClearErrorOnReturn(errors) as guard:
            assert errors.size() == 1
            assert guard.peek_error() == pack_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)

    def test_clears_when_body_raises(self) -> None:
        with pytest.raises(RuntimeError):
            with ClearErrorOnReturn():
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_FIELD)
                raise RuntimeError("boom")
        assert error_depth() == 0

    def test_does_not_clear_on_entry(self) -> None:
        push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
        with ClearErrorOnReturn():
            assert error_depth() == 1


class TestMarkPopErrorOnReturn:
    def test_preserves_errors_from_before_entry(self) -> None:
        before = push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT)
        with MarkPopErrorOnReturn():
            push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)
        assert _codes() == [before]

    def test_reports_popped_errors(self) -> None:
        errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        with MarkPopErrorOnReturn(errors):
            push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)
        assert errors.size() == 1
        assert error_depth() == 0

    def test_nested_inside_clear_guard(self) -> None:
        with ClearErrorOnReturn():
            outer = push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
            with MarkPopErrorOnReturn():
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_EXTENSION)
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_FIELD)
            assert _codes() == [outer]
        assert error_depth() == 0

    def test_nested_mark_pop_guards(self) -> None:
        with MarkPopErrorOnReturn():
            a = push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
            with MarkPopErrorOnReturn():
                push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT)
            assert _codes() == [a]
        assert error_depth() == 0

    def test_mark_survives_inner_clear(self) -> None:
        before = push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT)
        with MarkPopErrorOnReturn():
            clear_errors()
            push_error(ErrorLibrary.RAND, RandReason.ARGUMENT_OUT_OF_RANGE)
            again = push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
            assert again != before
        assert error_depth() == 0


class TestGuardMisuse:
    @pytest.mark.parametrize("guard_type", [ClearErrorOnReturn, MarkPopErrorOnReturn])
    def test_cannot_enter_twice(self, guard_type: type) -> None:
        guard = guard_type()
        with guard:
            pass
        with pytest.raises(ErrorScopeError):
            with guard:
                pass

    @pytest.mark.parametrize("guard_type", [ClearErrorOnReturn, MarkPopErrorOnReturn])
    def test_exit_without_enter(self, guard_type: type) -> None:
        with pytest.raises(ErrorScopeError):
            guard_type().__exit__(None, None, None)

    @pytest.mark.parametrize("guard_type", [ClearErrorOnReturn, MarkPopErrorOnReturn])
    def test_cannot_copy_or_pickle(self, guard_type: type) -> None:
        guard = guard_type()
        with pytest.raises(HandleCopyError):
            copy.copy(guard)
        with pytest.raises(HandleCopyError):
            copy.deepcopy(guard)
        with pytest.raises(HandleCopyError):
            pickle.dumps(guard)
