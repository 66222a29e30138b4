"""
Admin Shell - routes, the session gate and the one mounted view.

Only one view is mounted at a time. Navigating away unmounts the current
view first, which closes its live channel before anything else happens.
"""

import logging
from typing import Callable, Dict, Optional

from folio.admin.dashboard import DashboardView
from folio.admin.views import LIST_VIEWS
from folio.auth.session import (
    SessionGate, GateDecision, PLACEHOLDER, REDIRECT, RENDER, UNAUTHENTICATED, is_protected,
)
from folio.config import config
from folio.logging_config import configure_logging

logger = logging.getLogger(__name__)

NOT_FOUND = 'not_found'

ROUTES: Dict[str, Callable] = {DashboardView.route: DashboardView}
ROUTES.update({view.route: view for view in LIST_VIEWS})


class AdminApp:

    def __init__(self, gate: SessionGate, alert: Optional[Callable[[str], None]] = None,
                 routes: Optional[Dict[str, Callable]] = None):
        configure_logging()
        self.gate = gate
        self.routes = dict(routes or ROUTES)
        self.current_route: Optional[str] = None
        self.current_view = None
        self._alert = alert
        gate.on_change(self._session_changed)

    def start(self, route: str = '/admin/dashboard') -> GateDecision:
        """Check the session, then open the requested route."""
        self.gate.check()
        return self.navigate(route)

    def navigate(self, route: str) -> GateDecision:
        decision = self.gate.resolve(route)

        if decision.action == PLACEHOLDER:
            return decision

        if decision.action == REDIRECT:
            logger.info(f"Redirecting {route} -> {decision.route}")
            self._swap(None)
            self.current_route = decision.route
            return decision

        if not is_protected(route, self.gate.login_route):
            self._swap(None)
            self.current_route = route
            return decision

        view_cls = self.routes.get(route)
        if view_cls is None:
            return GateDecision(NOT_FOUND, route)

        user = self.gate.user or {}
        self._swap(view_cls(alert=self._alert, actor=user.get('id')))
        self.current_route = route
        self.current_view.mount()
        return GateDecision(RENDER, route)

    def _swap(self, view):
        previous, self.current_view = self.current_view, view
        if previous is not None:
            previous.unmount()

    def pump(self, timeout: Optional[float] = None) -> int:
        """Deliver pending live updates to the mounted view."""
        if self.current_view is None:
            return 0
        wait = config.REALTIME_POLL_SECONDS if timeout is None else timeout
        return self.current_view.poll(wait)

    def login(self, email: str, password: str, route: str = '/admin/dashboard') -> GateDecision:
        self.gate.login(email, password)
        return self.navigate(route)

    def logout(self) -> GateDecision:
        self._swap(None)
        decision = self.gate.logout()
        self.current_route = decision.route
        return decision

    def close(self):
        self._swap(None)
        self.gate.off_change(self._session_changed)

    def _session_changed(self, data):
        if data['state'] == UNAUTHENTICATED and self.current_route and is_protected(self.current_route, self.gate.login_route):
            self._swap(None)
            self.current_route = self.gate.login_route
