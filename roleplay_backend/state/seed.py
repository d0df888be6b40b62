from roleplay_backend.services.schemas import Character, Scenario
from roleplay_backend.state.store import ConversationStore

CHARACTERS = [
    Character(id="chen", name="Mr. Chen", role="Local",
              personality_prompt="Kind elderly man who knows the area."),
    Character(id="mei", name="Mei", role="Boba Clerk",
              personality_prompt="Trendy, high-energy bubble tea clerk."),
    Character(id="li", name="Li Jie", role="Store Clerk",
              personality_prompt="Busy but helpful grocery clerk."),
    Character(id="auntie", name="Auntie Wang", role="Food Vendor",
              personality_prompt="Loud, enthusiastic dumpling stall owner."),
    Character(id="zhang", name="Driver Zhang", role="Taxi Driver",
              personality_prompt="Friendly but impatient Shanghai taxi driver."),
    Character(id="lin", name="Manager Lin", role="Receptionist",
              personality_prompt="Formal, polite hotel manager."),
]

# (id, title, description, objective, difficulty, location, character id)
SCENARIOS = [
    ("first-encounters", "First Encounters",
     "You meet Mr. Chen in a park. Practice basic greetings and introduce yourself.",
     "Say hello, tell him your name, and ask how he is.", "Beginner", "City Park", "chen"),
    ("boba-craving", "Boba Craving", "Order a pearl milk tea from Mei.",
     "Specify your sugar and ice levels.", "Beginner", "Tea Shop", "mei"),
    ("market-master", "Market Master", "Buy fresh ingredients from Li Jie.",
     "Ask for the price and quantity of apples.", "Beginner", "Grocery Store", "li"),
    ("aunties-dumplings", "Auntie's Dumplings", "Order specialized dumplings from Auntie Wang.",
     "Order pork dumplings and ask for spicy sauce.", "Intermediate", "Night Market", "auntie"),
    ("taxi-to-the-bund", "Taxi to the Bund", "Tell Driver Zhang where you need to go.",
     "State destination and ask if he uses the meter.", "Beginner", "Airport", "zhang"),
    ("grand-check-in", "The Grand Check-in", "Check into your hotel with Manager Lin.",
     "Confirm your reservation and get your room key.", "Beginner", "Hotel Lobby", "lin"),
]


def seed_scenarios(store: ConversationStore) -> int:
    characters = {c.id: store.add_character(c) for c in CHARACTERS}

    for scenario_id, title, description, objective, difficulty, location, character_id in SCENARIOS:
        store.add_scenario(Scenario(
            id=scenario_id,
            title=title,
            description=description,
            objective=objective,
            difficulty=difficulty,
            location=location,
            character=characters[character_id],
        ))

    return len(SCENARIOS)
