from pathlib import Path

import psycopg2
import pytest

from vctransfer.errors import ConditionRejectedError, DumpFileError, QueryError
from vctransfer.transfer.bulk_copy import build_dump_query, build_load_query, dump, load

from fakes import FakeConnection, make_db, render

PGCOPY = b"PGCOPY\n\xff\r\n\x00" + b"\x00" * 8 + b"\xff\xff"


def writes_dump(payload: bytes = PGCOPY, rows: int = 3):
    def copy_handler(cursor, text, file):
        file.write(payload)
        cursor.rowcount = rows
    return copy_handler


def test_dump_query_without_condition():
    query = render(build_dump_query("smart_contracts"))

    assert query == 'COPY (SELECT * FROM "smart_contracts") TO STDOUT WITH (FORMAT binary)'


def test_dump_query_with_condition():
    query = render(build_dump_query("smart_contracts", "id > 100"))

    assert query == 'COPY (SELECT * FROM "smart_contracts" WHERE id > 100) TO STDOUT WITH (FORMAT binary)'


def test_dump_query_server_side_uses_path_literal():
    query = render(build_dump_query("public.smart_contracts", server_path=Path("/tmp/dump-x.bin")))

    assert query == "COPY (SELECT * FROM \"public\".\"smart_contracts\") TO '/tmp/dump-x.bin' WITH (FORMAT binary)"


def test_load_query():
    assert render(build_load_query("smart_contracts")) == 'COPY "smart_contracts" FROM STDIN WITH (FORMAT binary)'
    assert render(build_load_query("smart_contracts", Path("/tmp/d.bin"))) == (
        "COPY \"smart_contracts\" FROM '/tmp/d.bin' WITH (FORMAT binary)"
    )


def test_dump_writes_copy_stream_to_file(tmp_path):
    conn = FakeConnection(copy_handler=writes_dump())
    target = tmp_path / "dumps" / "dump-smart_contracts.bin"

    result = dump(make_db(conn, "smart_contracts"), "smart_contracts", target, condition="id > 100")

    assert target.read_bytes() == PGCOPY
    assert result.rows == 3
    assert result.size_bytes == len(PGCOPY)
    assert result.path == target.resolve()
    assert "WHERE id > 100" in conn.executed[0][0]
    assert conn.commits == 1


def test_dump_overwrites_existing_file(tmp_path):
    target = tmp_path / "dump-smart_contracts.bin"
    target.write_bytes(b"old contents that are longer than the new ones" * 10)
    conn = FakeConnection(copy_handler=writes_dump())

    dump(make_db(conn, "smart_contracts"), "smart_contracts", target)

    assert target.read_bytes() == PGCOPY


def test_dump_rejects_stacked_condition_before_touching_db(tmp_path):
    conn = FakeConnection(copy_handler=writes_dump())

    with pytest.raises(ConditionRejectedError):
        dump(make_db(conn), "smart_contracts", tmp_path / "d.bin", condition="1=1; DELETE FROM x")

    assert conn.executed == []


def test_dump_server_error_is_query_error(tmp_path):
    def fail(cursor, text, file):
        raise psycopg2.ProgrammingError('column "idd" does not exist')

    conn = FakeConnection(copy_handler=fail)

    with pytest.raises(QueryError, match="idd"):
        dump(make_db(conn), "smart_contracts", tmp_path / "d.bin", condition="idd > 1")
    assert conn.rollbacks == 1


def test_dump_unwritable_path_is_file_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    conn = FakeConnection(copy_handler=writes_dump())

    with pytest.raises(DumpFileError):
        dump(make_db(conn), "smart_contracts", blocker / "d.bin")


def test_dump_server_side_executes_copy_to_path(tmp_path):
    conn = FakeConnection()
    target = tmp_path / "d.bin"

    dump(make_db(conn), "smart_contracts", target, server_side=True)

    text, _ = conn.executed[0]
    assert text.startswith('COPY (SELECT * FROM "smart_contracts") TO ')
    assert repr(str(target.resolve())) in text
    assert conn.commits == 1


def test_load_streams_file_into_table(tmp_path):
    target = tmp_path / "dump-smart_contracts.bin"
    target.write_bytes(PGCOPY)
    received = []

    def copy_handler(cursor, text, file):
        received.append(file.read())
        cursor.rowcount = 3

    conn = FakeConnection(copy_handler=copy_handler)

    result = load(make_db(conn, "smart_contracts"), "smart_contracts", target)

    assert received == [PGCOPY]
    assert conn.executed[0][0] == 'COPY "smart_contracts" FROM STDIN WITH (FORMAT binary)'
    assert conn.commits == 1
    assert result.rows == 3


def test_load_missing_file_is_file_error(tmp_path):
    conn = FakeConnection()

    with pytest.raises(DumpFileError, match="not found"):
        load(make_db(conn), "smart_contracts", tmp_path / "missing.bin")
    assert conn.executed == []


def test_server_side_load_reads_file_written_by_server(tmp_path):
    target = tmp_path / "dump-smart_contracts.bin"
    source = FakeConnection()
    destination = FakeConnection()

    dump(make_db(source, "smart_contracts"), "smart_contracts", target, server_side=True)
    result = load(make_db(destination, "smart_contracts"), "smart_contracts", target, server_side=True)

    # the server wrote the file on its own host; nothing exists locally
    assert not target.exists()
    assert destination.executed[0][0] == f"COPY \"smart_contracts\" FROM {str(target.resolve())!r} WITH (FORMAT binary)"
    assert destination.commits == 1
    assert result.path == target.resolve()


def test_server_side_load_missing_file_is_query_error(tmp_path):
    def missing(cursor, text, params):
        raise psycopg2.OperationalError('could not open file "/srv/dump.bin" for reading: No such file or directory')

    conn = FakeConnection(missing)

    with pytest.raises(QueryError, match="could not open file"):
        load(make_db(conn), "smart_contracts", tmp_path / "dump.bin", server_side=True)
    assert conn.rollbacks == 1


def test_load_failure_rolls_back(tmp_path):
    target = tmp_path / "d.bin"
    target.write_bytes(PGCOPY)

    def fail(cursor, text, file):
        raise psycopg2.IntegrityError('duplicate key value violates unique constraint "smart_contracts_pkey"')

    conn = FakeConnection(copy_handler=fail)

    with pytest.raises(QueryError, match="duplicate key"):
        load(make_db(conn), "smart_contracts", target)
    assert conn.rollbacks == 1
    assert conn.commits == 0
