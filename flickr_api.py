import json
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from flickr_config import FlickrConfig
from flickr_request import OAuth, Request

# High-level helpers for common authenticated Flickr calls

logger = logging.getLogger(__name__)

PHOTO_EXTRAS = "url_q,url_m,description,date_upload,date_taken,owner_name,ispublic,isfriend,isfamily"


class FlickrAPI:
    """Wrapper for calling the Flickr REST API with OAuth authentication.

    Provides the login handshake and methods for fetching user info,
    contacts, groups, photos and photo details. Every fetch method needs a
    valid access token pair and raises on failure.

    Attributes:
        api_key (str): Flickr API key
        api_secret (str): Flickr API secret
        config (FlickrConfig): Endpoints and timeout
        client (httpx.Client): Optional shared HTTP client
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        config: Optional[FlickrConfig] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.config = config or FlickrConfig()
        self.client = client

    def request(
        self,
        method: str,
        oauth_token: str = "",
        oauth_token_secret: str = "",
        *,
        oauth_callback: str = "",
        **params: Any,
    ) -> Request:
        """Create a Request carrying this API's credentials.

        Args:
            method: Flickr method name, may be empty for handshake calls
            oauth_token: Access (or temporary) OAuth token
            oauth_token_secret: Matching token secret
            oauth_callback: OAuth callback URL for the request token call
            **params: Extra Flickr arguments, converted to strings

        Returns:
            A fresh Request sharing this API's config and client
        """
        oauth = OAuth(
            consumer_secret=self.api_secret,
            callback=oauth_callback,
            oauth_token=oauth_token,
            oauth_token_secret=oauth_token_secret,
        )
        args = {key: str(value) for key, value in params.items() if value is not None}
        return Request(
            self.api_key,
            method,
            args,
            oauth=oauth,
            config=self.config,
            client=self.client,
        )

    def call(
        self, method: str, oauth_token: str, oauth_token_secret: str, **params: Any
    ) -> Dict[str, Any]:
        """Run an authenticated call and decode its JSON body.

        Raises:
            FlickrAPIError: Flickr answered with stat=fail
            FlickrResponseError: The body is not JSON
            httpx.HTTPError: Transport failure
        """
        request = self.request(method, oauth_token, oauth_token_secret, **params)
        return json.loads(request.execute_authenticated())

    def get_login_url(self, callback_url: str, perms: str = "read") -> Tuple[str, Dict[str, str]]:
        """Start the OAuth login.

        Args:
            callback_url: Where Flickr sends the user after authorization
            perms: Requested permission scope: read, write or delete

        Returns:
            Tuple of (authorization URL for the user, temporary token dict).
            Keep the token dict; complete_login needs its secret.
        """
        request = self.request("", oauth_callback=callback_url)
        token = request.request_token()
        return request.authorize_url(token, perms), token

    def complete_login(self, request_token: Dict[str, str], verifier: str) -> Dict[str, str]:
        """Finish the OAuth login with the verifier Flickr passed to the callback.

        Returns:
            Access token dict with oauth_token, oauth_token_secret, user_nsid,
            username and fullname.
        """
        request = self.request("")
        tokens = request.access_token(
            request_token["oauth_token"], verifier, request_token["oauth_token_secret"]
        )
        logger.info("Completed Flickr login for %s", tokens.get("username", "unknown user"))
        return tokens

    def fetch_user_groups(
        self,
        oauth_token: str,
        oauth_token_secret: str,
        user_id: str,
        extras: str = None
    ) -> list:
        """Fetch the groups a user is a member of.

        Uses flickr.people.getGroups API endpoint.

        Args:
            oauth_token: Valid OAuth token for authentication
            oauth_token_secret: Valid OAuth token secret
            user_id: Flickr NSID of the user to fetch groups for
            extras: Optional comma-delimited extra fields to include.
                Common values: 'privacy,throttle,restrictions'

        Returns:
            List of group dictionaries (nsid, name, members, privacy, ...)
        """
        data = self.call(
            "flickr.people.getGroups",
            oauth_token,
            oauth_token_secret,
            user_id=user_id,
            extras=extras or None,
        )
        return data.get("groups", {}).get("group", [])

    def fetch_user_info(self, oauth_token: str, oauth_token_secret: str) -> Dict[str, Any]:
        """Fetch information about the currently authenticated user.

        Uses flickr.test.login API endpoint which returns basic user info.

        Returns:
            Dictionary with id and username (a dict with a _content field)
        """
        data = self.call("flickr.test.login", oauth_token, oauth_token_secret)
        return data.get("user", {})

    def fetch_contacts(self, oauth_token: str, oauth_token_secret: str) -> list:
        """Fetch the contact list (friends/family) for the authenticated user.

        Uses flickr.contacts.getList API endpoint.

        Returns:
            List of contact dictionaries with nsid, username, realname,
            friend and family fields
        """
        data = self.call("flickr.contacts.getList", oauth_token, oauth_token_secret)
        return data.get("contacts", {}).get("contact", [])

    def fetch_photos_of_user(
        self,
        oauth_token: str,
        oauth_token_secret: str,
        nsid: str,
        per_page: int = 1
    ) -> list:
        """Fetch photos of another user by NSID.

        Uses flickr.people.getPhotos API endpoint.
        """
        data = self.call(
            "flickr.people.getPhotos",
            oauth_token,
            oauth_token_secret,
            user_id=nsid,
            per_page=per_page,
            extras=PHOTO_EXTRAS,
        )
        return data.get("photos", {}).get("photo", [])

    def fetch_own_photos(
        self,
        oauth_token: str,
        oauth_token_secret: str,
        per_page: int = 20,
        page: int = 1,
        privacy_filter: int = None,
    ) -> Dict[str, Any]:
        """Fetch the logged-in user's own photos with privacy filtering.

        Uses flickr.photos.search API endpoint with user_id="me".

        Args:
            oauth_token: Valid OAuth token for authentication
            oauth_token_secret: Valid OAuth token secret
            per_page: Number of photos per page (default: 20)
            page: Page number to fetch (default: 1)
            privacy_filter: Optional privacy level (1-5):
                1=public, 2=friends, 3=family, 4=friends+family, 5=private

        Returns:
            Dictionary containing:
                - photos: List of photo dictionaries
                - pages: Total pages available
                - total: Total photos available
        """
        data = self.call(
            "flickr.photos.search",
            oauth_token,
            oauth_token_secret,
            user_id="me",
            per_page=per_page,
            extras=PHOTO_EXTRAS,
            privacy_filter=privacy_filter,
            page=page,
        )
        photos_data = data.get("photos", {})
        return {
            "photos": photos_data.get("photo", []),
            "pages": photos_data.get("pages", 1),
            "total": photos_data.get("total", 0)
        }

    def fetch_contacts_photos(
        self,
        oauth_token: str,
        oauth_token_secret: str,
        count: int = 50,
        just_friends: bool = False,
        single_photo: bool = True,
        include_self: bool = False,
        extras: str = "date_upload,date_taken,owner_name"
    ) -> list:
        """
        Fetch recent photos from contacts using flickr.photos.getContactsPhotos.

        Args:
            count (int): Number of photos to return (default: 50, max: 50).
            just_friends (bool): Only show photos from friends and family.
            single_photo (bool): Only fetch one photo per contact.
            include_self (bool): Include photos from the calling user.
            extras (str): Comma-delimited extra fields to fetch.
        """
        data = self.call(
            "flickr.photos.getContactsPhotos",
            oauth_token,
            oauth_token_secret,
            count=count,
            just_friends=int(just_friends),
            single_photo=int(single_photo),
            include_self=int(include_self),
            extras=extras or None,
        )
        return data.get("photos", {}).get("photo", [])

    def fetch_photo_sizes(self, oauth_token: str, oauth_token_secret: str, photo_id: str) -> list:
        data = self.call("flickr.photos.getSizes", oauth_token, oauth_token_secret, photo_id=photo_id)
        return data.get("sizes", {}).get("size", [])

    def fetch_photo_details(self, oauth_token: str, oauth_token_secret: str, photo_id: str) -> dict:
        data = self.call("flickr.photos.getInfo", oauth_token, oauth_token_secret, photo_id=photo_id)
        return data.get("photo", {})
