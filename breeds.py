"""
Breed group lookup used for breed compatibility scoring

Two different breeds earn the group bonus only when both appear below
under the same group. Breeds not listed have no group.
"""
from typing import Dict, List, Optional


GROUP_MEMBERS: Dict[str, List[str]] = {
  "native": [
    "aspin",
  ],
  "herding": [
    "australian cattle dog",
    "australian kelpie",
    "australian shepherd",
    "bearded collie",
    "beauceron",
    "belgian laekenois",
    "belgian malinois",
    "belgian sheepdog",
    "belgian tervuren",
    "berger picard",
    "border collie",
    "briard",
    "catalan sheepdog",
    "collie (rough)",
    "czechoslovakian wolfdog",
    "dutch shepherd",
    "german shepherd",
    "german shepherd dog",
    "croatian sheepdog",
    "komondor",
    "kuvasz",
    "old english sheepdog",
    "puli",
    "pumi",
    "saarloos wolfdog",
    "shetland sheepdog",
    "schipperke",
    "welsh corgi cardigan",
    "welsh corgi pembroke",
  ],
  "working": [
    "anatolian shepherd dog",
    "bernese mountain dog",
    "boxer",
    "bulldog",
    "bullmastiff",
    "caucasian shepherd dog",
    "central asia shepherd dog",
    "chinese shar-pei",
    "dobermann",
    "dogo argentino",
    "dogo canario",
    "dogue de bordeaux",
    "fila brasileiro",
    "giant schnauzer",
    "great dane",
    "great pyrenees",
    "mastiff",
    "miniature pinscher",
    "miniature schnauzer",
    "neapolitan mastiff",
    "newfoundland",
    "rottweiler",
    "st bernard",
    "tosa inu",
  ],
  "terrier": [
    "airedale terrier",
    "am staffordshire terrier",
    "australian terrier",
    "bedlington terrier",
    "border terrier",
    "bull terrier",
    "cairn terrier",
    "dandie dinmont terrier",
    "fox terrier (smooth)",
    "fox terrier (wirehaired)",
    "irish terrier",
    "jack russell terrier",
    "kerry blue terrier",
    "lakeland terrier",
    "manchester terrier",
    "miniature bull terrier",
    "norwich terrier",
    "parson russell terrier",
    "scottish terrier",
    "sealyham terrier",
    "skye terrier",
    "welsh terrier",
    "west highland white terrier",
    "yorkshire terrier",
  ],
  "non-sporting": [
    "akita",
    "alaskan malamute",
    "basenji",
    "chow chow",
    "german spitz",
    "greenland dog",
    "japanese spitz",
    "keeshond",
    "norwegian elkhound",
    "pomeranian",
    "samoyed",
    "shiba inu",
    "siberian husky",
  ],
  "hound": [
    # Scent hounds
    "alpine dachsbracke",
    "american foxhound",
    "basset hound",
    "bavarian mountain scenthound",
    "beagle",
    "black and tan coonhound",
    "bloodhound",
    "dachshund",
    "dachshund (std-smooth)",
    "dachshund (std-wirehaired)",
    "dalmatian",
    "english foxhound",
    "grand basset griffon vendeen",
    "hamiltonstovare",
    "harrier",
    "italian hound",
    "otterhound",
    "petit basset griffon vendeen",
    "rhodesian ridgeback",
    "swiss hound",
    "westphalian dachsbracke",
    # Sight hounds
    "afghan hound",
    "azawakh",
    "borzoi",
    "deerhound",
    "greyhound",
    "irish wolfhound",
    "italian greyhound",
    "saluki",
    "sloughi",
    "whippet",
  ],
  "sporting": [
    # Pointers & setters
    "bracco italiano",
    "brittany spaniel",
    "english pointer",
    "english setter",
    "german shorthaired pointer",
    "german wirehaired pointer",
    "gordon setter",
    "irish setter",
    "irish red & white setter",
    "pointer",
    "vizsla",
    "weimaraner",
    # Retrievers, spaniels & water dogs
    "am cocker spaniel",
    "american water spaniel",
    "barbet",
    "chesapeake bay retriever",
    "clumber spaniel",
    "cocker spaniel",
    "curly coated retriever",
    "english cocker spaniel",
    "english springer spaniel",
    "field spaniel",
    "flat coated retriever",
    "golden retriever",
    "irish water spaniel",
    "labrador retriever",
    "lagotto romagnolo",
    "nederlandse kooikerhondje",
    "nova scotia duck tolling retriever",
    "spanish water dog",
    "portuguese water dog",
    "sussex spaniel",
    "welsh springer spaniel",
  ],
  "toy": [
    "affenpinscher",
    "bichon frise",
    "bolognese",
    "boston terrier",
    "coton de tulear",
    "cavalier king charles spaniel",
    "chihuahua",
    "chinese crested dog",
    "french bulldog",
    "griffon (brussels)",
    "havanese",
    "japanese chin",
    "lhasa apso",
    "maltese",
    "papillon",
    "pekingese",
    "poodle",
    "pug",
    "shih tzu",
  ],
}


def _build_lookup() -> Dict[str, str]:
  lookup = {}
  for group, breeds in GROUP_MEMBERS.items():
    for breed in breeds:
      lookup[breed] = group
  return lookup


# breed name (lower case) -> group
BREED_GROUPS: Dict[str, str] = _build_lookup()


def get_breed_group(breed: Optional[str]) -> Optional[str]:
  """Return the group for a breed name, or None if the breed is not listed"""
  if not breed or not isinstance(breed, str):
    return None
  return BREED_GROUPS.get(breed.strip().lower())
