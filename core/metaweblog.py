# core/metaweblog.py
"""
MetaWeblog API endpoint for desktop blog editors

``MetaWeblogMiddleware`` answers XML-RPC calls on a single path in front
of the Flask app and forwards everything else. Calls are dispatched to a
``WeblogProvider`` resolved inside a request context, so providers can use
the app's services and database session.
"""

import inspect
import logging
import xmlrpc.client
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List
from xml.parsers.expat import ExpatError
from xmlrpc.client import Fault

from werkzeug.wrappers import Request, Response

from core.exceptions import MetaWeblogError

logger = logging.getLogger(__name__)

RSD_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rsd version="1.0" xmlns="http://archipelago.phrasewise.com/rsd">
  <service>
    <engineName>{engine}</engineName>
    <engineLink>{home}</engineLink>
    <homePageLink>{home}</homePageLink>
    <apis>
      <api name="MetaWeblog" preferred="true" apiLink="{api}" blogID="{blog_id}" />
    </apis>
  </service>
</rsd>
"""


class WeblogProvider(ABC):
    """Blog-side implementation of the MetaWeblog/Blogger calls"""

    @abstractmethod
    def get_users_blogs(self, key: str, username: str, password: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def new_post(self, blogid: str, username: str, password: str, post: Dict[str, Any], publish: bool) -> str:
        ...

    @abstractmethod
    def edit_post(self, postid: str, username: str, password: str, post: Dict[str, Any], publish: bool) -> bool:
        ...

    @abstractmethod
    def get_post(self, postid: str, username: str, password: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_recent_posts(self, blogid: str, username: str, password: str, number_of_posts: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_categories(self, blogid: str, username: str, password: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def new_media_object(self, blogid: str, username: str, password: str, media: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def delete_post(self, key: str, postid: str, username: str, password: str, publish: bool) -> bool:
        ...

    @abstractmethod
    def get_wp_categories(self, blogid: str, username: str, password: str) -> List[Dict[str, Any]]:
        ...


# XML-RPC method name -> provider method name
METHODS = {
    'blogger.getUsersBlogs': 'get_users_blogs',
    'blogger.deletePost': 'delete_post',
    'metaWeblog.newPost': 'new_post',
    'metaWeblog.editPost': 'edit_post',
    'metaWeblog.getPost': 'get_post',
    'metaWeblog.getRecentPosts': 'get_recent_posts',
    'metaWeblog.getCategories': 'get_categories',
    'metaWeblog.newMediaObject': 'new_media_object',
    'wp.getCategories': 'get_wp_categories',
}


class MetaWeblogEndpoint:
    """Turns XML-RPC request bodies into provider calls and back"""

    def __init__(self, provider_factory: Callable[[], WeblogProvider]):
        self.provider_factory = provider_factory

    def dispatch(self, rpc_name: str, params: tuple) -> Any:
        method_name = METHODS.get(rpc_name)
        if method_name is None:
            raise Fault(404, f"Unknown method '{rpc_name}'")

        method = getattr(self.provider_factory(), method_name)
        try:
            inspect.signature(method).bind(*params)
        except TypeError as e:
            raise Fault(400, f"Invalid parameters for {rpc_name}: {e}") from e

        try:
            return method(*params)
        except MetaWeblogError as e:
            logger.warning(f"{rpc_name} rejected: {e}")
            raise Fault(e.fault_code, str(e)) from e

    def handle(self, data: bytes) -> bytes:
        """Answer one XML-RPC request body with a response or fault body"""
        try:
            params, rpc_name = xmlrpc.client.loads(data, use_builtin_types=True)
            response = xmlrpc.client.dumps((self.dispatch(rpc_name, params),), methodresponse=True,
                                           allow_none=True, encoding='utf-8')
        except Fault as fault:
            response = xmlrpc.client.dumps(fault, allow_none=True, encoding='utf-8')
        except (ExpatError, xmlrpc.client.ResponseError) as e:
            response = xmlrpc.client.dumps(Fault(400, f"Malformed XML-RPC request: {e}"),
                                           encoding='utf-8')
        except Exception as e:
            logger.error(f"MetaWeblog call failed: {e}", exc_info=True)
            response = xmlrpc.client.dumps(Fault(500, 'Internal server error'), encoding='utf-8')
        return response.encode('utf-8')


class MetaWeblogMiddleware:
    """WSGI middleware serving the MetaWeblog API at ``path``"""

    def __init__(self, wsgi_app, flask_app, path: str, provider_factory: Callable[[], WeblogProvider]):
        self.wsgi_app = wsgi_app
        self.flask_app = flask_app
        self.path = path.rstrip('/') or '/'
        self.endpoint = MetaWeblogEndpoint(provider_factory)

    def __call__(self, environ, start_response):
        path = environ.get('PATH_INFO', '').rstrip('/') or '/'
        if path.lower() != self.path.lower():
            return self.wsgi_app(environ, start_response)

        with self.flask_app.request_context(environ):
            response = self._dispatch(Request(environ))
        return response(environ, start_response)

    def _dispatch(self, request: Request) -> Response:
        if request.method == 'GET':
            rsd = RSD_TEMPLATE.format(
                engine=self.flask_app.config.get('APP_NAME', 'WilderBlog'),
                home=request.host_url,
                api=request.base_url,
                blog_id=self.flask_app.config.get('APP_NAME', 'WilderBlog'),
            )
            return Response(rsd, mimetype='application/rsd+xml')
        if request.method != 'POST':
            return Response('Method Not Allowed', status=405, headers={'Allow': 'GET, POST'})

        body = self.endpoint.handle(request.get_data())
        return Response(body, mimetype='text/xml')
