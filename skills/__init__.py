from skills.image_skill import generate_or_edit_image, parse_data_uri
from skills.quiz_skill import DEFAULT_QUIZ, generate_quiz
from skills.translate_skill import translate

__all__ = ["translate", "generate_quiz", "DEFAULT_QUIZ", "generate_or_edit_image", "parse_data_uri"]
