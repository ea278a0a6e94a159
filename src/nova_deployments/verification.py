"""Block explorer verification requests for nova-deployments library."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from .exceptions import VerificationError
from .types import VerificationRequest


class VerificationRequester(ABC):
    """Submits deployed contracts for source verification."""

    @abstractmethod
    def request_verification(self, request: VerificationRequest) -> Any:
        """
        Submit a verification request.

        Returns:
            Request identifier assigned by the explorer

        Raises:
            VerificationError: If the request is rejected or cannot be sent
        """


class ExplorerVerifier(VerificationRequester):
    """Posts verification requests to a block explorer's contract_verification endpoint."""

    def __init__(
        self,
        verify_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.verify_url = verify_url
        self._session = session or requests.Session()
        self._timeout = timeout

    def request_verification(self, request: VerificationRequest) -> Any:
        payload = {
            "contractAddress": request.address,
            "contractName": request.source_ref,
            "constructorArguments": request.constructor_args_encoded,
            "bytecode": request.bytecode,
        }

        try:
            response = self._session.post(self.verify_url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise VerificationError(f"Network error during verification request: {e}") from e

        if not response.ok:
            raise VerificationError(
                f"Verification request failed with status {response.status_code}: {response.text}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise VerificationError(f"Unparseable verification response: {response.text!r}") from e

        # The explorer answers with a bare request id, or an object carrying one
        if isinstance(result, dict):
            if "error" in result:
                raise VerificationError(f"Verification rejected: {result['error']}")
            if "id" not in result:
                raise VerificationError(f"Verification response has no request id: {result}")
            return result["id"]
        return result
