import json

from promptpiper import ModelFamily, PromptCompressor, configure_logging

prompt = """
**The Oakhaven Reservoir Construction Project**

The municipal council of Oakhaven has approved the construction of a new massive water reservoir to support the city's expanding agricultural district. You have been hired as the lead project manager to calculate the final budget and the exact completion time. The reservoir is to be excavated in the shape of an inverted frustum of a right circular cone. The circular opening at the ground level has a radius of exactly 50 meters, while the circular bottom of the reservoir, located 20 meters vertically below ground level, has a radius of 30 meters. For all calculations, you must use the value of pi as 3.14159.

The excavation process is complicated by the geological composition of the ground. The top 8 meters of depth consist of loose sandy soil, while the remaining bottom 12 meters consist of dense granite bedrock. You have two teams of excavators available: Team Alpha and Team Beta. Team Alpha consists of 4 heavy-duty machines, and Team Beta consists of 6 lighter machines.

**The Questions:**

1. What is the total volume of the reservoir in cubic meters?
2. How many hours will it take to complete the excavation of the sandy soil layer?
3. What is the grand total cost of the entire project?
"""

configure_logging("INFO")

compressor = PromptCompressor.from_pretrained(
    model_name="microsoft/llmlingua-2-bert-base-multilingual-cased-meetingbank",
    family=ModelFamily.BERT_MULTILINGUAL,
    device_map="cpu",
)
compressed_prompt = compressor.compress_prompt(
    prompt,
    rate=0.33,
    force_tokens=["\n", "?", "Team Alpha", "Team Beta"],
    force_reserve_digit=True,
)

print(json.dumps(compressed_prompt, indent=2))
