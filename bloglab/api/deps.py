from fastapi import Request

from bloglab.services import Services

def get_services(request: Request) -> Services:
    """Services built by the application lifespan"""
    return request.app.state.services
