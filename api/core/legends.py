from __future__ import annotations

from typing import Dict, FrozenSet, List, NamedTuple, Optional

LEGEND_MULTIPLIER = 1.5


class LegendEntry(NamedTuple):
    tmdb_id: int
    name: str
    kind: str
    era: str


# Curated list of widely recognised screen legends, keyed on TMDB person id.
SCREEN_LEGENDS: List[LegendEntry] = [
    LegendEntry(4110, "Humphrey Bogart", "actor", "golden"),
    LegendEntry(6598, "Katharine Hepburn", "actor", "golden"),
    LegendEntry(854, "James Stewart", "actor", "golden"),
    LegendEntry(2638, "Cary Grant", "actor", "golden"),
    LegendEntry(1932, "Audrey Hepburn", "actor", "golden"),
    LegendEntry(3084, "Marlon Brando", "actor", "golden"),
    LegendEntry(3149, "Marilyn Monroe", "actor", "golden"),
    LegendEntry(549, "Grace Kelly", "actor", "golden"),
    LegendEntry(2636, "Alfred Hitchcock", "director", "golden"),
    LegendEntry(5085, "Orson Welles", "director", "golden"),
    LegendEntry(1158, "Al Pacino", "actor", "new_hollywood"),
    LegendEntry(380, "Robert De Niro", "actor", "new_hollywood"),
    LegendEntry(514, "Jack Nicholson", "actor", "new_hollywood"),
    LegendEntry(5064, "Meryl Streep", "actor", "new_hollywood"),
    LegendEntry(3, "Harrison Ford", "actor", "new_hollywood"),
    LegendEntry(190, "Clint Eastwood", "actor", "new_hollywood"),
    LegendEntry(3092, "Diane Keaton", "actor", "new_hollywood"),
    LegendEntry(193, "Gene Hackman", "actor", "new_hollywood"),
    LegendEntry(4483, "Dustin Hoffman", "actor", "new_hollywood"),
    LegendEntry(1032, "Martin Scorsese", "director", "new_hollywood"),
    LegendEntry(1776, "Francis Ford Coppola", "director", "new_hollywood"),
    LegendEntry(488, "Steven Spielberg", "director", "new_hollywood"),
    LegendEntry(240, "Stanley Kubrick", "director", "new_hollywood"),
    LegendEntry(578, "Ridley Scott", "director", "new_hollywood"),
    LegendEntry(1, "George Lucas", "director", "new_hollywood"),
    LegendEntry(500, "Tom Cruise", "actor", "blockbuster"),
    LegendEntry(31, "Tom Hanks", "actor", "blockbuster"),
    LegendEntry(1204, "Julia Roberts", "actor", "blockbuster"),
    LegendEntry(5292, "Denzel Washington", "actor", "blockbuster"),
    LegendEntry(2231, "Samuel L. Jackson", "actor", "blockbuster"),
    LegendEntry(2227, "Nicole Kidman", "actor", "blockbuster"),
    LegendEntry(287, "Brad Pitt", "actor", "blockbuster"),
    LegendEntry(11701, "Angelina Jolie", "actor", "blockbuster"),
    LegendEntry(85, "Johnny Depp", "actor", "blockbuster"),
    LegendEntry(112, "Cate Blanchett", "actor", "blockbuster"),
    LegendEntry(2888, "Will Smith", "actor", "blockbuster"),
    LegendEntry(192, "Morgan Freeman", "actor", "blockbuster"),
    LegendEntry(4173, "Anthony Hopkins", "actor", "blockbuster"),
    LegendEntry(934, "Russell Crowe", "actor", "blockbuster"),
    LegendEntry(204, "Kate Winslet", "actor", "blockbuster"),
    LegendEntry(1892, "Matt Damon", "actor", "blockbuster"),
    LegendEntry(819, "Edward Norton", "actor", "blockbuster"),
    LegendEntry(139, "Uma Thurman", "actor", "blockbuster"),
    LegendEntry(1160, "Michelle Pfeiffer", "actor", "blockbuster"),
    LegendEntry(1979, "Kevin Spacey", "actor", "blockbuster"),
    LegendEntry(138, "Quentin Tarantino", "director", "blockbuster"),
    LegendEntry(2710, "James Cameron", "director", "blockbuster"),
    LegendEntry(525, "Christopher Nolan", "director", "blockbuster"),
    LegendEntry(7467, "David Fincher", "director", "blockbuster"),
    LegendEntry(5655, "Wes Anderson", "director", "blockbuster"),
    LegendEntry(6193, "Leonardo DiCaprio", "actor", "modern"),
    LegendEntry(3894, "Christian Bale", "actor", "modern"),
    LegendEntry(1245, "Scarlett Johansson", "actor", "modern"),
    LegendEntry(30614, "Ryan Gosling", "actor", "modern"),
    LegendEntry(54693, "Emma Stone", "actor", "modern"),
    LegendEntry(131, "Jake Gyllenhaal", "actor", "modern"),
    LegendEntry(9273, "Amy Adams", "actor", "modern"),
    LegendEntry(5200, "Michael Fassbender", "actor", "modern"),
    LegendEntry(524, "Natalie Portman", "actor", "modern"),
    LegendEntry(25072, "Oscar Isaac", "actor", "modern"),
    LegendEntry(234352, "Margot Robbie", "actor", "modern"),
    LegendEntry(10859, "Ryan Reynolds", "actor", "modern"),
    LegendEntry(72129, "Jennifer Lawrence", "actor", "modern"),
    LegendEntry(73421, "Joaquin Phoenix", "actor", "modern"),
    LegendEntry(93210, "Adam Driver", "actor", "modern"),
    LegendEntry(36592, "Saoirse Ronan", "actor", "modern"),
    LegendEntry(2524, "Tom Hardy", "actor", "modern"),
    LegendEntry(6885, "Charlize Theron", "actor", "modern"),
    LegendEntry(172069, "Idris Elba", "actor", "modern"),
    LegendEntry(19492, "Viola Davis", "actor", "modern"),
    LegendEntry(53714, "Mahershala Ali", "actor", "modern"),
    LegendEntry(1267329, "Lupita Nyong'o", "actor", "modern"),
    LegendEntry(143206, "Dev Patel", "actor", "modern"),
    LegendEntry(61981, "Rami Malek", "actor", "modern"),
    LegendEntry(3910, "Frances McDormand", "actor", "modern"),
    LegendEntry(41737, "Denis Villeneuve", "director", "modern"),
    LegendEntry(45400, "Greta Gerwig", "director", "modern"),
    LegendEntry(291263, "Jordan Peele", "director", "modern"),
    LegendEntry(21684, "Bong Joon-ho", "director", "modern"),
    LegendEntry(1303459, "Damien Chazelle", "director", "modern"),
    LegendEntry(1190668, "Timothée Chalamet", "actor", "rising"),
    LegendEntry(505710, "Zendaya", "actor", "rising"),
    LegendEntry(1397778, "Anya Taylor-Joy", "actor", "rising"),
    LegendEntry(1373737, "Florence Pugh", "actor", "rising"),
    LegendEntry(2231945, "Paul Mescal", "actor", "rising"),
    LegendEntry(115440, "Sydney Sweeney", "actor", "rising"),
    LegendEntry(2037, "Barry Keoghan", "actor", "rising"),
    LegendEntry(1356210, "Jenna Ortega", "actor", "rising"),
    LegendEntry(1620721, "Jacob Elordi", "actor", "rising"),
    LegendEntry(1540161, "Jonathan Majors", "actor", "rising"),
    LegendEntry(3084110, "Milly Alcock", "actor", "rising"),
    LegendEntry(1253360, "Glen Powell", "actor", "rising"),
    LegendEntry(933238, "Jenna Coleman", "actor", "rising"),
    LegendEntry(17288, "Pedro Pascal", "actor", "rising"),
    LegendEntry(56734, "Chloe Grace Moretz", "actor", "rising"),
    LegendEntry(1254064, "Olivia Cooke", "actor", "rising"),
    LegendEntry(1245422, "Emerald Fennell", "director", "rising"),
]

_BY_ID: Dict[int, LegendEntry] = {entry.tmdb_id: entry for entry in SCREEN_LEGENDS}

LEGEND_IDS: FrozenSet[int] = frozenset(_BY_ID)


def is_screen_legend(person_id: int) -> bool:
    return person_id in LEGEND_IDS


def legend_multiplier(person_id: int) -> float:
    return LEGEND_MULTIPLIER if person_id in LEGEND_IDS else 1.0


def legend_by_id(person_id: int) -> Optional[LegendEntry]:
    return _BY_ID.get(person_id)
