# core/exceptions.py
"""
Error types raised by blog services
"""


class WilderBlogError(Exception):
    """Base exception for blog operations"""
    pass


class StoryNotFoundError(WilderBlogError):
    """No story matches the requested slug or id"""
    pass


class DataProviderError(WilderBlogError):
    """A content data file exists but could not be read"""
    pass


class MailDeliveryError(WilderBlogError):
    """SMTP delivery failed"""
    pass


class MetaWeblogError(WilderBlogError):
    """Invalid MetaWeblog request; reported to the client as an XML-RPC fault"""
    fault_code = 400


class MetaWeblogAuthError(MetaWeblogError):
    """Blog editor supplied bad credentials"""
    fault_code = 401
