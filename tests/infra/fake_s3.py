"""In-memory stand-in for the boto3 S3 client used by the storage facade."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from botocore.exceptions import ClientError


def client_error(code: str, operation: str, status: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} ({operation})"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


@dataclass
class FakeS3:
    """Dictionary-backed S3 bucket with call recording."""

    bucket: str = "test-bucket"
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    denied_keys: set[str] = field(default_factory=set)
    failing_keys: set[str] = field(default_factory=set)
    unavailable: bool = False

    def _record(self, name: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((name, kwargs))
        if self.unavailable:
            raise client_error("ServiceUnavailable", name, status=503)
        if kwargs.get("Bucket") not in (None, self.bucket):
            raise client_error("NoSuchBucket", name, status=404)

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def put_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("put_object", kwargs)
        body = kwargs["Body"]
        self.objects[kwargs["Key"]] = {
            "Body": bytes(body),
            "ContentType": kwargs.get("ContentType"),
            "CacheControl": kwargs.get("CacheControl"),
            "StorageClass": kwargs.get("StorageClass"),
            "Metadata": dict(kwargs.get("Metadata") or {}),
            "ETag": f'"etag-{len(self.objects) + 1}"',
            "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        return {"ETag": self.objects[kwargs["Key"]]["ETag"]}

    def _lookup(self, operation: str, key: str) -> dict[str, Any]:
        if key in self.denied_keys:
            raise client_error("AccessDenied", operation, status=403)
        if key not in self.objects:
            code = "404" if operation == "HeadObject" else "NoSuchKey"
            raise client_error(code, operation, status=404)
        return self.objects[key]

    def get_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("get_object", kwargs)
        obj = self._lookup("GetObject", kwargs["Key"])
        body = obj["Body"]
        response: dict[str, Any] = {}
        if kwargs.get("Range"):
            start, end = kwargs["Range"].removeprefix("bytes=").split("-")
            body = body[int(start) : int(end) + 1]
            response["ContentRange"] = f"bytes {start}-{end}/{len(obj['Body'])}"
        response.update(
            {
                "Body": io.BytesIO(body),
                "ContentLength": len(body),
                "ContentType": kwargs.get("ResponseContentType") or obj["ContentType"],
                "ETag": obj["ETag"],
                "LastModified": obj["LastModified"],
                "Metadata": obj["Metadata"],
            }
        )
        return response

    def head_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("head_object", kwargs)
        obj = self._lookup("HeadObject", kwargs["Key"])
        return {
            "ContentLength": len(obj["Body"]),
            "ContentType": obj["ContentType"],
            "CacheControl": obj["CacheControl"],
            "StorageClass": obj["StorageClass"],
            "ETag": obj["ETag"],
            "LastModified": obj["LastModified"],
            "Metadata": obj["Metadata"],
        }

    def delete_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("delete_object", kwargs)
        self.objects.pop(kwargs["Key"], None)
        return {}

    def delete_objects(self, **kwargs: Any) -> dict[str, Any]:
        self._record("delete_objects", kwargs)
        deleted: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        for item in kwargs["Delete"]["Objects"]:
            key = item["Key"]
            if key in self.failing_keys:
                errors.append(
                    {"Key": key, "Code": "InternalError", "Message": "try again"}
                )
                continue
            self.objects.pop(key, None)
            deleted.append({"Key": key})
        response: dict[str, Any] = {"Deleted": deleted}
        if errors:
            response["Errors"] = errors
        return response

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        self._record("list_objects_v2", kwargs)
        prefix = kwargs.get("Prefix", "")
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        start_after = kwargs.get("ContinuationToken") or kwargs.get("StartAfter")
        if start_after:
            keys = [k for k in keys if k > start_after]

        delimiter = kwargs.get("Delimiter")
        common: list[str] = []
        if delimiter:
            flat: list[str] = []
            for key in keys:
                rest = key[len(prefix) :]
                if delimiter in rest:
                    folder = prefix + rest.split(delimiter, 1)[0] + delimiter
                    if folder not in common:
                        common.append(folder)
                else:
                    flat.append(key)
            keys = flat

        max_keys = kwargs.get("MaxKeys", 1000)
        page, remainder = keys[:max_keys], keys[max_keys:]
        response: dict[str, Any] = {
            "KeyCount": len(page),
            "IsTruncated": bool(remainder),
            "Contents": [
                {
                    "Key": key,
                    "Size": len(self.objects[key]["Body"]),
                    "ETag": self.objects[key]["ETag"],
                    "LastModified": self.objects[key]["LastModified"],
                    "StorageClass": self.objects[key]["StorageClass"],
                }
                for key in page
            ],
        }
        if common:
            response["CommonPrefixes"] = [{"Prefix": p} for p in common]
        if remainder:
            response["NextContinuationToken"] = page[-1]
        return response

    def generate_presigned_url(
        self, ClientMethod: str, Params: dict[str, Any], ExpiresIn: int
    ) -> str:
        self._record("generate_presigned_url", dict(Params))
        return (
            f"https://fake-s3/{Params['Bucket']}/{Params['Key']}"
            f"?method={ClientMethod}&expires={ExpiresIn}"
        )
