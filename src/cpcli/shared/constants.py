"""
cpcli - ClearPass Endpoint Constants

This module contains the ClearPass paths, cookie names and legacy DWR request
bodies used by the session manager.
API paths are relative to https://<server>/api, web paths to https://<server>/tips.
"""

# REST API
API_OAUTH = "/oauth"
API_CLIENT_INFO = "/api-client"  # Needs /{client_id}

API_RESOURCE_ENDPOINT = "endpoint"
API_RESOURCE_GUEST = "guest"
API_RESOURCE_INSIGHT = "insight"

DEFAULT_PAGE_SIZE = 24

# Grant types
GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_PASSWORD = "password"
GRANT_REFRESH_TOKEN = "refresh_token"

# Web interface
WEB_LOGIN_PAGE = "/tipsLogin.action"
WEB_LOGIN_SUBMIT = "/tipsLoginSubmit.action"
WEB_LOGIN_CHECK = "/tipsLoginCheck.action"
WEB_CONTENT_PAGE = "/tipsContent.action"
WEB_EXPORT = "/tipsExport.action"
WEB_IMPORT_PAGE = "/tipsImport.action"
WEB_IMPORT_UPLOAD = "/tipsUploadImport.action"
WEB_DWR_GENERATE_ID = "/dwr/call/plaincall/__System.generateId.dwr"
WEB_DWR_BEFORE_LOGIN = "/dwr/call/plaincall/beforeLogin.getPublisherUrl.dwr"
WEB_DWR_DESTROY_SESSION = "/dwr/call/plaincall/login.destroySession.dwr"

# Cookies
SESSION_COOKIE = "JSESSIONID"
DWR_SESSION_COOKIE = "DWRSESSIONID"

# DWR (Direct Web Remoting) scripted call bodies
DWR_GENERATE_ID_BODY = (
    "callCount=1\n"
    "c0-scriptName=__System\n"
    "c0-methodName=generateId\n"
    "c0-id=0\n"
    "batchId=0\n"
    "instanceId=0\n"
    "page=%2Ftips%2FtipsLogin.action\n"
    "scriptSessionId=\n"
)
DWR_BEFORE_LOGIN_BODY = (
    "callCount=1\n"
    "nextReverseAjaxIndex=0\n"
    "c0-scriptName=beforeLogin\n"
    "c0-methodName=getPublisherUrl\n"
    "c0-id=0\n"
    "batchId=1\n"
    "instanceId=0\n"
    "page=%2Ftips%2FtipsLogin.action\n"
    "scriptSessionId={session_id}\n"
)
DWR_DESTROY_SESSION_BODY = (
    "callCount=1\n"
    "nextReverseAjaxIndex=0\n"
    "c0-scriptName=login\n"
    "c0-methodName=destroySession\n"
    "c0-id=0\n"
    "batchId=1\n"
    "instanceId=0\n"
    "page=%2Ftips%2FtipsContent.action\n"
    "scriptSessionId={session_id}\n"
)

# The DWR id is the third argument of the callback:
#   dwr.engine.remote.handleCallback("0","0","<id>");
DWR_CALLBACK_PATTERN = r'dwr\.engine\.remote\.handleCallback\("[^"]*","[^"]*","([^"]*)"'

# Struts anti-replay token in the import form
IMPORT_TOKEN_MARKER = 'name="token" value="'

# Form fields
LOGIN_DISCRIMINATOR_FIELD = "F_password"
EXPORT_PASSWORD_FIELD = "encyptionPassword"  # sic, spelled this way by ClearPass

# Browser-like headers for the web interface
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
HTML_ACCEPT_ENCODING = "gzip, deflate"
