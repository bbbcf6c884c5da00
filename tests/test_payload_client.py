"""Tests for the Payload REST client."""

import json
import unittest

import requests

from exceptions import DestinationStoreError
from importers.payload_client import PayloadClient, UploadFile, flatten_where
from fakes import FakeResponse, FakeSession


class TestFlattenWhere(unittest.TestCase):
    def test_nested_operators(self):
        self.assertEqual(
            flatten_where({'filename': {'contains': 'abc'}}),
            [('where[filename][contains]', 'abc')]
        )

    def test_lists_and_scalars(self):
        self.assertEqual(
            flatten_where({'tags': {'in': ['t1', 't2']}, 'draft': {'equals': False}}),
            [
                ('where[tags][in][0]', 't1'),
                ('where[tags][in][1]', 't2'),
                ('where[draft][equals]', 'false'),
            ]
        )

    def test_null(self):
        self.assertEqual(flatten_where({'image': {'equals': None}}), [('where[image][equals]', 'null')])


class TestPayloadClient(unittest.TestCase):
    def client(self, *responses):
        self.session = FakeSession(responses=list(responses))
        return PayloadClient('http://cms.test/', 'secret', session=self.session)

    def test_auth_header(self):
        self.client()
        self.assertEqual(self.session.headers['Authorization'], 'users API-Key secret')

    def test_create_unwraps_doc(self):
        client = self.client(FakeResponse(201, {'doc': {'id': 'p1', 'title': 'About'}, 'message': 'ok'}))
        doc = client.create('pages', {'title': 'About'}, locale='es')

        self.assertEqual(doc, {'id': 'p1', 'title': 'About'})
        call = self.session.calls[0]
        self.assertEqual(call['method'], 'POST')
        self.assertEqual(call['url'], 'http://cms.test/api/pages')
        self.assertIn(('locale', 'es'), call['params'])
        self.assertEqual(call['json'], {'title': 'About'})

    def test_update_path(self):
        client = self.client(FakeResponse(200, {'doc': {'id': 'p1'}}))
        client.update('pages', 'p1', {'content': {}})
        self.assertEqual(self.session.calls[0]['method'], 'PATCH')
        self.assertEqual(self.session.calls[0]['url'], 'http://cms.test/api/pages/p1')

    def test_upload_is_multipart(self):
        client = self.client(FakeResponse(201, {'doc': {'id': 'm1', 'filename': 'a.webp'}}))
        doc = client.create('media', {'alt': 'A'}, file=UploadFile(b'RIFF', 'a.webp', 'image/webp'))

        self.assertEqual(doc['filename'], 'a.webp')
        call = self.session.calls[0]
        self.assertIsNone(call['json'])
        self.assertEqual(call['files'], {'file': ('a.webp', b'RIFF', 'image/webp')})
        self.assertEqual(json.loads(call['data']['_payload']), {'alt': 'A'})

    def test_find_encodes_query(self):
        client = self.client(FakeResponse(200, {'docs': [{'id': 'm1'}], 'totalDocs': 1}))
        result = client.find('media', where={'filename': {'contains': 'abc'}}, limit=100)

        self.assertEqual(result['docs'], [{'id': 'm1'}])
        params = self.session.calls[0]['params']
        self.assertIn(('limit', '100'), params)
        self.assertIn(('depth', '0'), params)
        self.assertIn(('where[filename][contains]', 'abc'), params)

    def test_find_all_follows_pages(self):
        client = self.client(
            FakeResponse(200, {'docs': [{'id': 1}, {'id': 2}], 'hasNextPage': True}),
            FakeResponse(200, {'docs': [{'id': 3}], 'hasNextPage': False}),
        )
        self.assertEqual([doc['id'] for doc in client.find_all('meditations', locale='en')], [1, 2, 3])
        self.assertIn(('page', '2'), self.session.calls[1]['params'])

    def test_find_by_id_not_found(self):
        client = self.client(FakeResponse(404, {'errors': [{'message': 'Not Found'}]}))
        self.assertIsNone(client.find_by_id('media', 'missing'))

    def test_error_status_raises(self):
        client = self.client(FakeResponse(400, {'errors': [{'message': 'invalid'}]}))
        with self.assertRaises(DestinationStoreError) as ctx:
            client.create('pages', {})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn('invalid', ctx.exception.body)

    def test_delete_not_found_raises_with_status(self):
        client = self.client(FakeResponse(404, {'errors': []}))
        with self.assertRaises(DestinationStoreError) as ctx:
            client.delete('pages', 'gone')
        self.assertEqual(ctx.exception.status_code, 404)

    def test_empty_response(self):
        client = self.client(FakeResponse(204))
        client.delete('pages', 'p1')
        self.assertEqual(self.session.calls[0]['method'], 'DELETE')

    def test_transport_error(self):
        client = self.client(requests.ConnectionError('refused'))
        with self.assertRaises(DestinationStoreError) as ctx:
            client.check_connection()
        self.assertIsNone(ctx.exception.status_code)

    def test_gateway_error_on_create_not_resent(self):
        client = self.client(
            FakeResponse(502, {'errors': [{'message': 'Bad Gateway'}]}),
            FakeResponse(201, {'doc': {'id': 'a2'}}),
        )
        with self.assertRaises(DestinationStoreError) as ctx:
            client.create('authors', {'name': 'Ann'})
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(len(self.session.calls), 1)

    def test_transport_retries_only_idempotent_methods(self):
        """Writes that may already have been applied are never retried."""
        client = PayloadClient('https://cms.test', 'k', max_retries=3)
        retry = client.session.get_adapter('https://cms.test/api/authors').max_retries
        self.assertFalse(retry.is_retry('POST', 502))
        self.assertFalse(retry.is_retry('PATCH', 503))
        self.assertTrue(retry.is_retry('GET', 502))
        self.assertTrue(retry.is_retry('DELETE', 503))

    def test_from_config(self):
        client = PayloadClient.from_config({'payload': {
            'base_url': 'https://cms.test', 'api_key': 'k', 'auth_collection': 'admins', 'timeout': 5,
        }})
        self.assertEqual(client.base_url, 'https://cms.test')
        self.assertEqual(client.timeout, 5)
        self.assertEqual(client.session.headers['Authorization'], 'admins API-Key k')


if __name__ == '__main__':
    unittest.main()
