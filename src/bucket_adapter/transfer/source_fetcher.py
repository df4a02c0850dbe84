from typing import Annotated

import requests
from pydantic import AnyUrl, TypeAdapter, UrlConstraints, ValidationError

USER_AGENT = 'bucket-adapter'
# (connect, read) seconds
SOURCE_TIMEOUT = (10, 60)

# No max_length: presigned source urls carrying STS tokens run past HttpUrl's 2083 limit
HttpsUrl = Annotated[AnyUrl, UrlConstraints(allowed_schemes=["https"], host_required=True)]

_https_url = TypeAdapter(HttpsUrl)


def is_https_url(value) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        _https_url.validate_python(value)
    except ValidationError:
        return False
    return True


def create_source_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def open_source_stream(source_url: str, session: requests.Session) -> requests.Response:
    """
    Start a streaming GET against source_url.
    Raises requests.HTTPError carrying the status code on a non-success response.
    The caller owns the returned response and must close it.
    """
    response = session.get(source_url, stream=True, timeout=SOURCE_TIMEOUT)
    try:
        response.raise_for_status()
    except requests.HTTPError:
        response.close()
        raise
    # Body is consumed through response.raw; undo gzip/deflate transfer encodings
    response.raw.decode_content = True
    return response
