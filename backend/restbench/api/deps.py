from fastapi import Depends, Request

from restbench.services.container import AppServices
from restbench.services.storage import Storage


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_storage(services: AppServices = Depends(get_services)) -> Storage:
    return services.storage
