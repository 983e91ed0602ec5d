"""Controller scaling Deployments to the replica count declared by OAM ManualScalerTraits."""

__version__ = "0.1.0"
