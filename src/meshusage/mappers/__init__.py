from .resource_mapper import ResourceBucket, ResourceDataMapper, is_namespace_injection_enabled

__all__ = ["ResourceBucket", "ResourceDataMapper", "is_namespace_injection_enabled"]
