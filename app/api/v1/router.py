# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from fastapi import APIRouter
from app.api.v1 import auth, users
from app.api.v1 import projects, documents
from app.api.v1 import crm_clients, crm_projects, crm_tags
from app.api.v1 import notifications
from app.api.v1 import teams
from app.api.v1 import time_tracking
from app.api.v1 import health

"""
Roteador principal da API.


- Agrega e inclui sub-routers (auth, wiki, crm, notificações, times, time tracking...).
- Centraliza prefixos/tags; importado por `main.py` como `/api`.
"""

router_api = APIRouter()

# Sub-rotas
router_api.include_router(auth.router,  prefix="/auth", tags=["auth"])
router_api.include_router(users.router, prefix="",      tags=["users"])

router_api.include_router(projects.router,            prefix="/projects",  tags=["projects"])
router_api.include_router(documents.router_document,  prefix="/documents", tags=["documents"])
router_api.include_router(documents.router_search,    prefix="",           tags=["search"])

router_api.include_router(crm_clients.router_client,  prefix="/crm/clients",  tags=["crm-clients"])
router_api.include_router(crm_clients.router_contact, prefix="/crm/contacts", tags=["crm-clients"])
router_api.include_router(crm_projects.router,        prefix="/crm/projects", tags=["crm-projects"])
router_api.include_router(crm_tags.router,            prefix="/crm/tags",     tags=["crm-tags"])

router_api.include_router(notifications.router, prefix="/notifications", tags=["notifications"])

router_api.include_router(teams.router_team,   prefix="/teams",  tags=["teams"])
router_api.include_router(teams.router_invite, prefix="/invite", tags=["teams"])

router_api.include_router(time_tracking.router, prefix="/time-tracking", tags=["time-tracking"])

router_api.include_router(health.router, prefix="/health")
