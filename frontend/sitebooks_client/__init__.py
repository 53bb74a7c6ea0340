"""
SiteBooks API Client
"""
import os
import logging
import requests
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

BACKEND_URL = os.getenv('BACKEND_URL', 'http://localhost:8000')


class ApiError(Exception):
    """Error response from the backend, carrying its message and status"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiClient:
    """
    Thin wrapper over a requests session.

    Any object with a requests-style ``request(method, url, ...)`` method can
    stand in for the session, which is how the tests drive the app in-process.
    """

    def __init__(self, base_url=None, token=None, session=None):
        self.base_url = (base_url or BACKEND_URL).rstrip('/')
        self.token = token
        self.session = session or requests.Session()

    def get_backend_url(self, endpoint):
        """Get full backend URL"""
        return f"{self.base_url}/api/v1{endpoint}"

    def request(self, method, endpoint, data=None, params=None, include_auth=True):
        """Make request to backend API; returns decoded JSON or raises ApiError"""
        headers = {'Content-Type': 'application/json'}
        if include_auth and self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        if params:
            params = {
                key: value.isoformat() if hasattr(value, 'isoformat') else value
                for key, value in params.items() if value is not None
            }

        try:
            response = self.session.request(
                method, self.get_backend_url(endpoint), json=data, params=params or None, headers=headers
            )
        except requests.exceptions.ConnectionError as exc:
            logger.error(f"Backend connection error: {exc}")
            raise ApiError("Backend connection error") from exc

        if response.status_code == 204 or not response.content:
            payload = {}
        else:
            try:
                payload = response.json()
            except ValueError:
                payload = {}

        if response.status_code >= 400:
            message = payload.get('error') if isinstance(payload, dict) else None
            raise ApiError(message or f"Request failed: {response.status_code}", response.status_code)
        return payload

    def get(self, endpoint, params=None):
        return self.request('GET', endpoint, params=params)

    def post(self, endpoint, data=None):
        return self.request('POST', endpoint, data=data)

    def put(self, endpoint, data=None):
        return self.request('PUT', endpoint, data=data)

    def patch(self, endpoint, data=None):
        return self.request('PATCH', endpoint, data=data)

    def delete(self, endpoint):
        return self.request('DELETE', endpoint)

    # ==================== AUTH ====================

    def login(self, email, password):
        """Log in and keep the access token for later requests"""
        result = self.request('POST', '/auth/login', data={'email': email, 'password': password}, include_auth=False)
        self.token = result['access_token']
        return result['user']

    def logout(self):
        self.token = None


__all__ = ['ApiClient', 'ApiError', 'BACKEND_URL']
