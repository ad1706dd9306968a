from unittest import mock

from botocore.exceptions import ClientError

from layoffs_pipeline.storage import content_type_for, upload_file_to_s3, upload_files


def client_error():
    return ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")


def test_content_type_for():
    assert content_type_for("a/b/report.parquet") == "application/vnd.apache-parquet"
    assert content_type_for("layoffs.CSV") == "text/csv"
    assert content_type_for("notes.txt") == "application/octet-stream"


def test_upload_file_to_s3_defaults_key_to_basename(tmp_path):
    path = tmp_path / "report.parquet"
    path.write_bytes(b"data")
    client = mock.Mock()

    assert upload_file_to_s3(str(path), "bucket", s3_client=client) is True
    client.upload_file.assert_called_once_with(
        str(path), "bucket", "report.parquet",
        ExtraArgs={"ContentType": "application/vnd.apache-parquet"},
    )


def test_upload_file_to_s3_retries_then_succeeds(tmp_path):
    path = tmp_path / "report.parquet"
    path.write_bytes(b"data")
    client = mock.Mock()
    client.upload_file.side_effect = [client_error(), None]

    assert upload_file_to_s3(str(path), "bucket", s3_client=client, retry_delay=0) is True
    assert client.upload_file.call_count == 2


def test_upload_file_to_s3_gives_up(tmp_path):
    path = tmp_path / "report.parquet"
    path.write_bytes(b"data")
    client = mock.Mock()
    client.upload_file.side_effect = client_error()

    assert upload_file_to_s3(str(path), "bucket", s3_client=client, retry_attempts=2, retry_delay=0) is False
    assert client.upload_file.call_count == 2


def test_upload_files_uses_prefix(tmp_path):
    files = []
    for name in ("a.parquet", "b.parquet"):
        path = tmp_path / name
        path.write_bytes(b"data")
        files.append(str(path))
    client = mock.Mock()

    results = upload_files(files, "bucket", prefix="2023/03/01/", s3_client=client, retry_delay=0)

    assert results == {files[0]: True, files[1]: True}
    keys = [call.args[2] for call in client.upload_file.call_args_list]
    assert keys == ["2023/03/01/a.parquet", "2023/03/01/b.parquet"]
