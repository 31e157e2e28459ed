# RUN: python -m unittest discover -s py/tests -k transforms

import math
import unittest
from datetime import date, datetime, timezone

from skematic import (
    UNDEF,
    CastError,
    SkematicError,
    convert_number,
    format,
    to_boolean,
    to_date,
    to_float,
    to_integer,
    to_number,
    to_string,
)


class TestTransforms(unittest.TestCase):

    def test_to_string(self):
        self.assertIsNone(to_string(None))
        self.assertEqual('abc', to_string('abc'))
        self.assertEqual('true', to_string(True))
        self.assertEqual('false', to_string(False))
        self.assertEqual('1234', to_string(1234))
        self.assertEqual('1', to_string(1.0))
        self.assertEqual('1.5', to_string(1.5))
        self.assertEqual('{"a":1}', to_string({'a': 1}))
        self.assertEqual('1,2,three,', to_string([1, 2, 'three', None]))

        with self.assertRaisesRegex(CastError, 'String'):
            to_string(UNDEF)

    def test_to_number(self):
        self.assertIsNone(to_number(None))
        self.assertIs(UNDEF, to_number(''))
        self.assertEqual(1, to_number(True))
        self.assertEqual(0, to_number(False))
        self.assertEqual(12, to_number('12'))
        self.assertEqual(12.5, to_number('12.5'))
        self.assertEqual(7.25, to_number(7.25))
        self.assertEqual(-3, to_number(' -3 '))

        for bad in ('12kg', 'nan', [1], {'a': 1}, UNDEF):
            with self.assertRaisesRegex(CastError, 'Failed to cast to Number'):
                to_number(bad)

    def test_to_float(self):
        self.assertEqual(12.5, to_float('12.5kg'))
        self.assertEqual(0.5, to_float('.5'))
        self.assertEqual(3.0, to_float(3))
        self.assertTrue(math.isinf(to_float(float('inf'))))

        with self.assertRaises(CastError):
            to_float('kg')

    def test_to_integer(self):
        self.assertEqual(3, to_integer(3.7))
        self.assertEqual(-3, to_integer(-3.7))
        self.assertEqual(12, to_integer('12px'))
        self.assertEqual(255, to_integer('ff', 16))
        self.assertEqual(255, to_integer('0xff', 16))
        self.assertEqual(5, to_integer('101', 2))
        self.assertEqual(1, to_integer(True))

        with self.assertRaises(CastError):
            to_integer('px')

    def test_to_boolean(self):
        self.assertIsNone(to_boolean(None))
        self.assertFalse(to_boolean('false'))
        self.assertFalse(to_boolean('0'))
        self.assertFalse(to_boolean(0))
        self.assertFalse(to_boolean(''))
        self.assertTrue(to_boolean('true'))
        self.assertTrue(to_boolean('yes'))
        self.assertTrue(to_boolean(1))

    def test_to_date(self):
        self.assertEqual('1970-01-01T00:00:00.000Z', to_date(0))
        self.assertEqual('1970-01-01T00:00:01.500Z', to_date('1500'))
        self.assertEqual('2020-01-02T03:04:05.678Z', to_date('2020-01-02T03:04:05.678Z'))
        self.assertEqual('2020-01-02T00:00:00.000Z', to_date(date(2020, 1, 2)))
        self.assertEqual('2020-01-02T03:04:05.000Z',
                         to_date(datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)))
        self.assertIsNone(to_date(None))
        self.assertIsNone(to_date(''))

        for bad in (UNDEF, [1], True, 'not a date'):
            with self.assertRaisesRegex(CastError, 'Failed to cast to Date'):
                to_date(bad)

    def test_convert_number_convertor(self):
        self.assertEqual(20, convert_number('10', lambda v: int(v) * 2))
        self.assertEqual(8, convert_number('10', radix=8))

    def test_cast_error_kinds(self):
        self.assertTrue(issubclass(CastError, SkematicError))
        self.assertTrue(issubclass(CastError, ValueError))

    def test_casters_as_transforms(self):
        model = {
            'age': {'transforms': ['trim', 'toInteger']},
            'ok': {'transforms': 'toBoolean'},
            'tag': {'transforms': ['toString', 'uppercase', 'nowhite']},
        }

        self.assertEqual(format(model, {'age': ' 42 ', 'ok': 'false', 'tag': ['a b', 'c']}),
                         {'age': 42, 'ok': False, 'tag': 'AB,C'})

        with self.assertRaises(CastError):
            format(model, {'age': 'old'})


if __name__ == "__main__":
    unittest.main()
