from resumezap.clients.ai_client import AiGatewayClient
from resumezap.clients.evolution_client import EvolutionClient

__all__ = ["AiGatewayClient", "EvolutionClient"]
