"""
Jira Cloud connector.

Jira's REST API is addressed per cloud site, so the schema fetch first lists
the sites the token can reach and then reads projects from the first one.
"""

import logging
from typing import Any, Dict

import httpx

from .errors import SchemaFetchError
from .oauth import OAuthConnector

logger = logging.getLogger(__name__)

ATLASSIAN_API = "https://api.atlassian.com"


class JiraConnector(OAuthConnector):

    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        headers = self.auth_headers(credential)

        resources = (await self.fetch_samples(headers=headers))["resources"]
        if not resources:
            raise SchemaFetchError("No accessible Jira sites found", self.provider_id)

        site = resources[0]
        url = f"{ATLASSIAN_API}/ex/jira/{site['id']}/rest/api/3/project"
        try:
            async with self.client() as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                projects = response.json()
        except httpx.HTTPStatusError as e:
            raise SchemaFetchError(
                f"Jira answered {e.response.status_code} listing projects", self.provider_id
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SchemaFetchError(f"Failed to list Jira projects: {e}", self.provider_id) from e

        logger.info(f"Fetched {len(projects)} Jira projects from site {site.get('name', site['id'])}")
        return {"resources": resources, "projects": projects}
