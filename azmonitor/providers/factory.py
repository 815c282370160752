"""
ClientFactory — picks how the receiver authenticates against Azure.

Two creators share one method, create_clients(subscription_id):
  1. ClientSecretCreator: service principal (tenant, client id, secret)
  2. ManagedIdentityCreator: ambient managed identity, optionally user-assigned

The creator is chosen once from configuration and never switched afterwards.
"""

import inspect
from typing import Dict, Optional, Protocol, Type

from azure.identity.aio import ClientSecretCredential, ManagedIdentityCredential

from ..core.config import MonitorConfig
from ..core.exceptions import ClientCreationError, ConfigError
from ..core.logging import get_logger
from .azure import AzureClients

logger = get_logger(__name__)


class ClientCreator(Protocol):
    def create_clients(self, subscription_id: str) -> AzureClients:
        ...


class ClientSecretCreator:
    def __init__(self, client_id: str, client_secret: str, tenant_id: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id

    def create_clients(self, subscription_id: str) -> AzureClients:
        logger.info("[Azure] Creating clients with service principal credentials")
        try:
            credential = ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
            return AzureClients(subscription_id, credential)
        except Exception as e:
            raise ClientCreationError(f"error creating Azure clients: {e}") from e


class ManagedIdentityCreator:
    def __init__(self, client_id: Optional[str] = None):
        self.client_id = client_id

    def create_clients(self, subscription_id: str) -> AzureClients:
        logger.info(
            "[Azure] Creating clients with "
            + ("user-assigned" if self.client_id else "system-assigned")
            + " managed identity"
        )
        try:
            if self.client_id:
                credential = ManagedIdentityCredential(client_id=self.client_id)
            else:
                credential = ManagedIdentityCredential()
            return AzureClients(subscription_id, credential)
        except Exception as e:
            raise ClientCreationError(f"error creating Azure clients for managed identity: {e}") from e


class ClientFactory:
    """
    Maps auth_method names to creators.
    Extra kwargs are filtered to what each creator's constructor accepts.
    """

    _creators: Dict[str, Type] = {
        "client_secret": ClientSecretCreator,
        "managed_identity": ManagedIdentityCreator,
    }

    @classmethod
    def get_creator(cls, auth_method: str, **kwargs) -> ClientCreator:
        creator_class = cls._creators.get(auth_method)
        if not creator_class:
            raise ConfigError(f"Unknown auth_method: {auth_method}")

        sig = inspect.signature(creator_class.__init__)
        accepted_kwargs = {
            k: v for k, v in kwargs.items()
            if k in sig.parameters
        }
        return creator_class(**accepted_kwargs)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> ClientCreator:
        return cls.get_creator(
            config.auth_method,
            client_id=config.client_id,
            client_secret=config.client_secret,
            tenant_id=config.tenant_id,
        )
