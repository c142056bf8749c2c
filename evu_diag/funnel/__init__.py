from .client import FunnelClient, response_body, tariff_list

__all__ = ["FunnelClient", "response_body", "tariff_list"]
