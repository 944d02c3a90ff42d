#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Defines custom exceptions to handle specific error cases gracefully."""

from typing import Optional


class InstaclustrException(Exception):
    """Base exception for the exporter."""

    def __init__(self, message: str = "Instaclustr exporter error occurred"):
        """Initialize InstaclustrException."""
        self.message = message
        super().__init__(self.message)


class UpstreamRequestError(InstaclustrException):
    """Raised when a request to the Instaclustr API fails.

    Covers transport failures, responses with a non-2xx status and failures while
    reading the response body.

    Attributes:
        url (str): The requested URL.
        status_code (Optional[int]): HTTP status of the response, if one was received.
    """

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        """Initialize UpstreamRequestError."""
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    def __str__(self):
        """Return a string representation of the request error."""
        if self.status_code is not None:
            return f"UpstreamRequestError: {self.message} (status={self.status_code}, url={self.url})"
        return f"UpstreamRequestError: {self.message} (url={self.url})"


class DecodeError(InstaclustrException):
    """Raised when an upstream response is not valid JSON or does not have the expected shape."""

    def __init__(self, message: str, resource: str):
        """Initialize DecodeError."""
        self.resource = resource
        super().__init__(message)

    def __str__(self):
        """Return a string representation of the decode error."""
        return f"DecodeError: {self.message} (resource={self.resource})"


class ScrapeError(InstaclustrException):
    """Raised when a scrape cannot produce any observation at all."""

    pass
