from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict


class PassageChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str


class Passage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    chunks: List[PassageChunk]

    @property
    def content(self) -> str:
        return "\n\n".join(chunk.content for chunk in self.chunks)


HONEYBEES = Passage(
    id="honeybees",
    title="The Secret Life of Honeybees",
    chunks=[
        PassageChunk(
            id="colony",
            title="A Colony of Thousands",
            content=(
                "A single honeybee colony can hold between twenty and sixty thousand bees, yet it "
                "behaves almost like one living creature. Every bee belongs to one of three castes: "
                "the queen, the workers and the drones. Each caste has a job, and the hive only "
                "survives when all of them do that job well."
            ),
        ),
        PassageChunk(
            id="queen",
            title="The Queen",
            content=(
                "There is usually only one queen in a hive. Her main task is to lay eggs, and during "
                "the busiest weeks of summer she may lay up to 2000 eggs in a single day. The queen "
                "also releases chemical signals called pheromones that keep the colony calm and "
                "united. If she dies, the workers quickly raise a new queen by feeding a young larva "
                "a special food known as royal jelly."
            ),
        ),
        PassageChunk(
            id="workers",
            title="The Workers",
            content=(
                "Worker bees are all female, and their duties change as they grow older. Young "
                "workers clean the cells and feed the larvae. A little later they build wax comb and "
                "guard the entrance of the hive. Only in the last weeks of their short lives do they "
                "fly out as foragers, collecting nectar and pollen from flowers."
            ),
        ),
        PassageChunk(
            id="drones",
            title="The Drones",
            content=(
                "The male bees are called drones. They have no stinger and do not gather food. Their "
                "only purpose is to mate with a queen from another colony. When autumn arrives and "
                "food becomes scarce, the workers push the drones out of the hive."
            ),
        ),
        PassageChunk(
            id="dance",
            title="Dancing Directions",
            content=(
                "When a forager finds a rich patch of flowers, she returns to the hive and performs "
                "the waggle dance. The angle of her dance shows the direction of the flowers compared "
                "with the sun, and the length of the waggle tells the other bees how far away the "
                "food is. In this way a whole colony can learn where to find food without any bee "
                "saying a word."
            ),
        ),
    ],
)

DEFAULT_PASSAGE = HONEYBEES
