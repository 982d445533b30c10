"""
Grade arithmetic shared by the services and plugins.

Grades are stored as percentages (0..100, five decimals) and converted to
"real" grades out of the workshop's maximum only for display.
"""

GRADE_DECIMALS = 5


def grade_floatval(value):
    """Round a grade the way it is stored; None stays None."""
    if value is None or value == '':
        return None
    return round(float(value), GRADE_DECIMALS)


def grade_floats_equal(a, b) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return grade_floatval(a) == grade_floatval(b)


def grade_floats_different(a, b) -> bool:
    """True when the stored value would change. Exactly one None differs."""
    return not grade_floats_equal(a, b)


def real_grade_value(value, max_grade, decimals=0):
    """Convert a percentual value (0..100) to a grade out of max_grade."""
    if value is None or value == '':
        return None
    if max_grade == 0:
        return 0
    return round(max_grade * float(value) / 100, decimals)


def raw_grade_value(value, max_grade):
    """Convert a grade out of max_grade back into a percentual value.

    Values above the maximum return max_grade itself, as existing stored
    data relies on that behaviour.
    """
    if value is None or value == '':
        return None
    value = float(value)
    if max_grade == 0 or value < 0:
        return 0
    p = value / max_grade * 100
    if p > 100:
        return max_grade
    return grade_floatval(p)


def percent_to_value(percent, total):
    """Return the given percentage of total."""
    if percent < 0 or percent > 100:
        raise ValueError('The percent can not be less than 0 or higher than 100')
    return total * percent / 100


def real_grade(workshop: dict, value):
    """Real grade for submission."""
    return real_grade_value(value, workshop["grade"], workshop.get("gradedecimals", 0))


def real_grading_grade(workshop: dict, value):
    """Real grade for assessment."""
    return real_grade_value(value, workshop["gradinggrade"], workshop.get("gradedecimals", 0))
