from fastapi import APIRouter, Depends

from mybest.core.config import Settings, get_settings
from mybest.services.ai_gateway.factory import configured_providers, resolve_credentials

router = APIRouter(tags=['health'])


@router.get('/health')
def health(config: Settings = Depends(get_settings)):
    return {
        'status': 'ok',
        'ai_configured': bool(configured_providers(resolve_credentials(config=config), config)),
    }
