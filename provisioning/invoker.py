"""Control-plane action invoker.

Calls one named AWS API operation through a boto3 client and hands back the
raw response. The invoker keeps no state between calls and does not retry;
whatever retry behaviour botocore's transport is configured with is all
there is.
"""

import logging
from typing import Any, Mapping, Optional

import boto3
from botocore import xform_name
from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from provisioning.errors import ApiError, TransportError, UnknownOperationError

logger = logging.getLogger(__name__)


def client_name(service: str) -> str:
    """Map an SDK service name ("AppRunner") to its boto3 client name."""
    return service.replace("-", "").replace(" ", "").lower()


def api_operation_name(operation_name: str) -> str:
    """Normalize "createAutoScalingConfiguration" to "CreateAutoScalingConfiguration"."""
    if not operation_name:
        raise UnknownOperationError("operation_name must be a non-empty string")
    return operation_name[0].upper() + operation_name[1:]


class ControlPlaneInvoker:
    """Invoke named operations of a single AWS service.

    Args:
        service: SDK service name, e.g. "AppRunner"
        client: Pre-built boto3 client (tests pass a stubbed one)
        session: boto3 Session used to build the client when none is given
        region_name: Region for the client built from the session

    Raises:
        TransportError: If no client can be built (no region, unknown service)
    """

    def __init__(self, service: str, client=None, session: Optional[boto3.session.Session] = None,
                 region_name: Optional[str] = None):
        self.service = service
        if client is None:
            session = session or boto3.session.Session()
            try:
                client = session.client(client_name(service), region_name=region_name)
            except BotoCoreError as e:
                logger.error("%s client unavailable: %s", service, e)
                raise TransportError(service, str(e)) from e
        self._client = client

    @property
    def client(self):
        return self._client

    def invoke(self, operation_name: str, parameters: Mapping[str, Any]) -> dict:
        """Run operation_name with parameters and return the response.

        Raises:
            UnknownOperationError: If the service has no such operation
            ApiError: If the API rejected the call
            TransportError: If the API could not be reached
        """
        api_name = api_operation_name(operation_name)
        if api_name not in self._client.meta.service_model.operation_names:
            raise UnknownOperationError(f"{self.service} has no operation '{operation_name}'")

        method = getattr(self._client, xform_name(api_name))
        logger.info("Invoking %s.%s", self.service, api_name)
        try:
            response = method(**dict(parameters))
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            message = error.get("Message", str(e))
            logger.error("%s.%s rejected: %s %s", self.service, api_name, code, message)
            raise ApiError(api_name, code, message) from e
        except ParamValidationError as e:
            logger.error("%s.%s rejected parameters: %s", self.service, api_name, e)
            raise ApiError(api_name, "ParamValidationError", str(e)) from e
        except BotoCoreError as e:
            logger.error("%s.%s transport failure: %s", self.service, api_name, e)
            raise TransportError(api_name, str(e)) from e

        return {key: value for key, value in response.items() if key != "ResponseMetadata"}
