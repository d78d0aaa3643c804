"""Unit tests for ProfileVectorizer."""
import pytest

from app.services.vectorizer import ProfileVectorizer


@pytest.fixture
def vectorizer():
    return ProfileVectorizer()


class TestVectorize:
    def test_vector_has_eleven_dimensions(self, vectorizer):
        vector = vectorizer.vectorize(age=30, gender="female")
        assert len(vector) == 11

    def test_minimum_age_maps_to_zero(self, vectorizer):
        assert vectorizer.vectorize(age=18, gender="male")[0] == 0.0
        assert vectorizer.vectorize(age=100, gender="male")[0] == pytest.approx(1.0)

    @pytest.mark.parametrize("age", range(18, 100))
    def test_age_component_is_bounded_and_increasing(self, vectorizer, age):
        current = vectorizer.vectorize(age=age, gender="male")[0]
        following = vectorizer.vectorize(age=age + 1, gender="male")[0]
        assert 0.0 <= current < following <= 1.0

    def test_gender_is_one_hot(self, vectorizer):
        assert vectorizer.vectorize(age=30, gender="male")[1:4] == [1.0, 0.0, 0.0]
        assert vectorizer.vectorize(age=30, gender="female")[1:4] == [0.0, 1.0, 0.0]
        assert vectorizer.vectorize(age=30, gender="other")[1:4] == [0.0, 0.0, 1.0]

    def test_unknown_gender_has_no_hot_bit(self, vectorizer):
        assert vectorizer.vectorize(age=30, gender="")[1:4] == [0.0, 0.0, 0.0]

    def test_text_lengths_are_capped(self, vectorizer):
        vector = vectorizer.vectorize(age=30, gender="male", bio="x" * 100, about="y" * 5000)
        assert vector[4] == pytest.approx(0.5)
        assert vector[5] == 1.0

    def test_experience_and_tenure(self, vectorizer):
        experience = [
            {"title": "Engineer", "duration": "2 yrs 6 mos"},
            {"title": "Intern", "duration": "6 mos"},
            {"title": "Advisor", "duration": "ongoing"},
        ]
        vector = vectorizer.vectorize(age=30, gender="male", experience=experience)
        assert vector[6] == pytest.approx(3 / 5)
        # (30 + 6) / 2 months; the unparseable entry is excluded
        assert vector[7] == pytest.approx(18 / 60)

    def test_education_flags(self, vectorizer):
        education = [
            {"school": "UCL", "degree": "BSc", "fieldOfStudy": None},
            {"school": "MIT", "degree": None, "fieldOfStudy": "Physics"},
        ]
        vector = vectorizer.vectorize(age=30, gender="male", education=education)
        assert vector[8] == pytest.approx(2 / 3)
        assert vector[9] == 1.0
        assert vector[10] == 1.0

    def test_empty_profile_tail_is_zero(self, vectorizer):
        vector = vectorizer.vectorize(age=25, gender="other")
        assert vector[4:] == [0.0] * 7

    def test_deterministic(self, vectorizer):
        kwargs = dict(age=41, gender="female", bio="Hello", experience=[{"duration": "1 yr"}])
        assert vectorizer.vectorize(**kwargs) == vectorizer.vectorize(**kwargs)


class TestParseDurationMonths:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2 yrs 3 mos", 27),
            ("1 yr", 12),
            ("11 mos", 11),
            ("Jan 2020 - Present · 4 yrs 2 mos", 50),
            ("", 0),
            (None, 0),
            ("a while", 0),
        ],
    )
    def test_parse(self, text, expected):
        assert ProfileVectorizer.parse_duration_months(text) == expected


class TestUserVector:
    def test_refresh_stores_vector(self, vectorizer, user_factory):
        user = user_factory("carol", gender="female", age=18, bio=None)
        vector = vectorizer.refresh_user_vector(user)
        assert user.profile_vector == vector
        assert vector[0] == 0.0
        assert vector[2] == 1.0
