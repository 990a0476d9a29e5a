"""Provider collaborators."""

from .ec2 import EC2Cloud, NAME_TAG, new_filter, tags_to_dict

__all__ = ['EC2Cloud', 'NAME_TAG', 'new_filter', 'tags_to_dict']
