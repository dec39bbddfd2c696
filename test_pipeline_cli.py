"""End-to-end tests for the streaming pipeline and its CLI wiring."""

import hashlib
import io
import json

from objectstream.cli import expand_env_vars, main, read_identifiers
from objectstream.config import AppConfig, StoreClientConfig, StreamOptions, TransformConfig
from objectstream.pipeline import StreamPipeline, encode_unit

BUCKET = "evidence"


def _populate(tmp_path, objects):
    bucket_dir = tmp_path / BUCKET
    bucket_dir.mkdir(parents=True, exist_ok=True)
    for key, data in objects.items():
        target = bucket_dir / key
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return tmp_path


def _config(base_path, **kwargs):
    return AppConfig(
        bucket=BUCKET,
        store=StoreClientConfig(type="local_fs", params={"base_path": str(base_path)}),
        **kwargs,
    )


def test_pipeline_writes_concatenated_content(tmp_path):
    base = _populate(tmp_path, {"a.txt": b"alpha\n", "docs/b.txt": b"beta\n"})
    sink = io.BytesIO()

    result = StreamPipeline(_config(base)).run(["a.txt", "docs/b.txt"], sink)

    assert sink.getvalue() == b"alpha\nbeta\n"
    assert result.objects_processed == 2
    assert result.units_written == 2
    assert result.bytes_written == len(b"alpha\nbeta\n")


def test_pipeline_writes_records_as_json_lines(tmp_path):
    base = _populate(
        tmp_path,
        {"events-1.jsonl": b'{"id": 1}\n{"id": 2}\n', "events-2.jsonl": b'{"id": 3}\n'},
    )
    config = _config(
        base,
        transform=TransformConfig(type="jsonl"),
        options=StreamOptions(full_metadata=True),
    )
    sink = io.BytesIO()

    StreamPipeline(config).run([{"Key": "events-1.jsonl"}, {"Key": "events-2.jsonl"}], sink)

    lines = sink.getvalue().decode("utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [{"id": 1}, {"id": 2}, {"id": 3}]


def test_encode_unit():
    assert encode_unit(b"raw") == b"raw"
    assert encode_unit("text") == b"text"
    assert encode_unit({"Key": "a"}) == b'{"Key": "a"}\n'


def test_config_from_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "bucket": "logs",
                "store": {"type": "s3", "params": {"region": "eu-west-1"}},
                "transform": {"type": "gunzip"},
                "options": {"full_metadata": True, "chunk_size": 4096},
            }
        )
    )

    config = AppConfig.from_json(path)

    assert config.bucket == "logs"
    assert config.store.params == {"region": "eu-west-1"}
    assert config.transform.type == "gunzip"
    assert config.options.object_mode is True
    assert config.options.chunk_size == 4096


def test_read_identifiers():
    lines = ["a.txt\n", "\n", "  b.txt  \n"]
    assert list(read_identifiers(lines, full_metadata=False)) == ["a.txt", "b.txt"]

    records = ['{"Key": "a.txt", "Size": 1}\n']
    assert list(read_identifiers(records, full_metadata=True)) == [{"Key": "a.txt", "Size": 1}]


def test_expand_env_vars(monkeypatch):
    monkeypatch.setenv("STREAM_BUCKET", "prod-bucket")

    expanded = expand_env_vars({"bucket": "${STREAM_BUCKET}", "store": {"params": ["$UNSET_VAR_XYZ"]}})

    assert expanded == {"bucket": "prod-bucket", "store": {"params": ["$UNSET_VAR_XYZ"]}}


def test_cli_streams_keys_to_output(tmp_path):
    base = _populate(tmp_path / "store", {"a.bin": b"\x00\x01", "b.bin": b"\x02"})
    output = tmp_path / "out.bin"

    status = main(
        [
            "--store", "local_fs",
            "--base-path", str(base),
            "--bucket", BUCKET,
            "--output", str(output),
            "--env-file", str(tmp_path / "missing.env"),
            "a.bin",
            "b.bin",
        ]
    )

    assert status == 0
    assert output.read_bytes() == b"\x00\x01\x02"


def test_cli_hashes_records_from_input_file(tmp_path):
    base = _populate(tmp_path / "store", {"x.txt": b"x", "y.txt": b"y"})
    listing = tmp_path / "listing.jsonl"
    listing.write_text('{"Key": "x.txt", "Size": 1}\n{"Key": "y.txt", "Size": 1}\n')
    output = tmp_path / "digests.txt"

    status = main(
        [
            "--store", "local_fs",
            "--base-path", str(base),
            "--bucket", BUCKET,
            "--full-metadata",
            "--transform", "hash",
            "--input", str(listing),
            "--output", str(output),
            "--env-file", str(tmp_path / "missing.env"),
        ]
    )

    assert status == 0
    expected = hashlib.sha256(b"x").hexdigest() + hashlib.sha256(b"y").hexdigest()
    assert output.read_text() == expected


def test_cli_missing_object_fails(tmp_path):
    base = _populate(tmp_path / "store", {"present.txt": b"here"})

    status = main(
        [
            "--store", "local_fs",
            "--base-path", str(base),
            "--bucket", BUCKET,
            "--output", str(tmp_path / "out.bin"),
            "--env-file", str(tmp_path / "missing.env"),
            "present.txt",
            "absent.txt",
        ]
    )

    assert status == 1


def test_cli_requires_bucket(tmp_path):
    status = main(["--store", "local_fs", "--env-file", str(tmp_path / "missing.env"), "a.txt"])

    assert status == 2


def test_pipeline_lines_transform_keeps_line_breaks(tmp_path):
    base = _populate(tmp_path, {"a.txt": b"alpha\nbeta\n", "b.txt": b"gamma"})
    sink = io.BytesIO()

    result = StreamPipeline(_config(base, transform=TransformConfig(type="lines"))).run(["a.txt", "b.txt"], sink)

    assert sink.getvalue() == b"alpha\nbeta\ngamma\n"
    assert result.units_written == 3


def test_cli_jsonl_transform_writes_records(tmp_path):
    base = _populate(tmp_path / "store", {"e.jsonl": b'{"id": 1}\n{"id": 2}\n'})
    output = tmp_path / "records.jsonl"

    status = main(
        [
            "--store", "local_fs",
            "--base-path", str(base),
            "--bucket", BUCKET,
            "--transform", "jsonl",
            "--output", str(output),
            "--env-file", str(tmp_path / "missing.env"),
            "e.jsonl",
        ]
    )

    assert status == 0
    assert [json.loads(line) for line in output.read_text().splitlines()] == [{"id": 1}, {"id": 2}]


def test_cli_object_mode_flag(tmp_path):
    base = _populate(tmp_path / "store", {"a.txt": b"one\ntwo\n"})
    output = tmp_path / "lines.txt"

    status = main(
        [
            "--store", "local_fs",
            "--base-path", str(base),
            "--bucket", BUCKET,
            "--object-mode",
            "--transform", "lines",
            "--output", str(output),
            "--env-file", str(tmp_path / "missing.env"),
            "a.txt",
        ]
    )

    assert status == 0
    assert output.read_text() == "one\ntwo\n"


def test_cli_rejects_unknown_config_keys(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"bucket": "logs", "store": {"type": "s3"}, "options": {"prefetch": True}})
    )

    status = main(["--config", str(config_path), "--env-file", str(tmp_path / "missing.env"), "a.txt"])

    assert status == 2
