# MySQL access goes through PyMySQL standing in for the MySQLdb driver Django expects.
import pymysql

pymysql.install_as_MySQLdb()
