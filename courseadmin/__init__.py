"""
courseadmin: administrative console for a course-management API.
"""
