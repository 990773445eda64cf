from enum import Enum


class ArtifactSlot(str, Enum):
    """The two durable hand-off slots of the offline signing pipeline.

    Written in order: UNSIGNED by the build stage, SIGNED by the signing stage.
    """

    UNSIGNED = "unsigned"
    SIGNED = "signed"
